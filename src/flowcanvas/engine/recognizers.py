"""Engine output line recognizers.

Each recognizer pairs a compiled pattern with a handler that builds an
ExecutionEvent from the match. ``classify`` tries them in order and the
first match wins; a line matching nothing is UNCLASSIFIED, never an error.
"""

import re
from collections.abc import Callable
from typing import NamedTuple

from flowcanvas.contracts.enums import EventKind
from flowcanvas.contracts.status import ExecutionEvent

Handler = Callable[[re.Match[str], str], ExecutionEvent]


class Recognizer(NamedTuple):
    name: str
    pattern: re.Pattern[str]
    handler: Handler


# Known process name fragments and their short labels, checked in order
_DISPLAY_NAMES: tuple[tuple[str, str], ...] = (
    ("filter_node", "Filter"),
    ("map_node", "Map"),
    ("merge_node", "Merge"),
    ("save_", "Display Output"),
    ("fastqc_", "FastQC"),
    ("trimmomatic_", "Trimmomatic"),
)


def display_name(process_name: str) -> str:
    """Short label for an engine process name, or the name itself."""
    for fragment, label in _DISPLAY_NAMES:
        if fragment in process_name:
            return label
    return process_name


def _launched(match: re.Match[str], line: str) -> ExecutionEvent:
    return ExecutionEvent(
        kind=EventKind.WORKFLOW_LAUNCHED,
        line=line,
        message=f"Started: {match.group(1)} [{match.group(2)}]",
    )


def _executor(match: re.Match[str], line: str) -> ExecutionEvent:
    return ExecutionEvent(
        kind=EventKind.EXECUTOR_SUMMARY,
        line=line,
        total=int(match.group(2)),
        message=f"Executor: {match.group(1)} ({match.group(2)} processes running)",
    )


def _discovered(match: re.Match[str], line: str) -> ExecutionEvent:
    return ExecutionEvent(kind=EventKind.STAGE_DISCOVERED, line=line, stage_name=match.group(1))


def _progress(match: re.Match[str], line: str) -> ExecutionEvent:
    return ExecutionEvent(
        kind=EventKind.STAGE_PROGRESS,
        line=line,
        task_id=match.group("task"),
        stage_name=match.group("name").replace("…", ""),
        completed=int(match.group("completed")),
        total=int(match.group("total")),
        marker=match.group("marker"),
    )


def _task_completed(match: re.Match[str], line: str) -> ExecutionEvent:
    return ExecutionEvent(
        kind=EventKind.TASK_COMPLETED,
        line=line,
        task_id=match.group(1),
        stage_name=match.group(3),
        message=f"Completed: {match.group(3)} [{match.group(1)}]",
    )


def _completed(match: re.Match[str], line: str) -> ExecutionEvent:
    return ExecutionEvent(
        kind=EventKind.WORKFLOW_COMPLETED,
        line=line,
        exit_code=0,
        message="Nextflow execution completed successfully",
    )


def _error(match: re.Match[str], line: str) -> ExecutionEvent:
    return ExecutionEvent(kind=EventKind.WORKFLOW_ERROR, line=line, message=match.group(1).strip())


def _failed(match: re.Match[str], line: str) -> ExecutionEvent:
    return ExecutionEvent(kind=EventKind.WORKFLOW_FAILED, line=line, message=line.strip())


def _failed_exit_code(match: re.Match[str], line: str) -> ExecutionEvent:
    return ExecutionEvent(
        kind=EventKind.WORKFLOW_FAILED,
        line=line,
        exit_code=int(match.group(1)),
        message=line.strip(),
    )


def _cancelled(match: re.Match[str], line: str) -> ExecutionEvent:
    return ExecutionEvent(kind=EventKind.WORKFLOW_CANCELLED, line=line, message=line.strip())


_COMPLETION = re.compile(
    r"Completed at:"
    r"|Duration\s*:\s+\S"
    r"|CPU hours\s*:\s+\S"
    r"|Succeeded\s*:\s+\d+"
    r"|Process completed with exit code:\s*0\b"
    r"|Nextflow execution completed successfully"
    r"|Pipeline completed successfully"
)

# "[ab/123456] filter_node_42 | 1 of 1 ✔" as well as the engine's own
# "[ab/123456] process > filter_node_42 (1) [100%] 1 of 1 ✔"
_PROGRESS = re.compile(
    r"\[(?P<task>[\w/]+)\]\s+"
    r"(?:process\s*>\s*)?"
    r"(?P<name>[^\s|]+)(?:\s+\([^)]+\))?\s*"
    r"(?:\|\s*|\[\s*\d+%\]\s*)"
    r"(?P<completed>\d+)\s+of\s+(?P<total>\d+)"
    r"(?:\s*,[^✔❌⚠✘]*)?"
    r"\s*(?P<marker>[✔❌⚠✘])?"
)

RECOGNIZERS: tuple[Recognizer, ...] = (
    Recognizer("launch", re.compile(r"Launching `([^`]+)`.*\[([^\]]+)\]"), _launched),
    Recognizer("executor", re.compile(r"executor >\s+(\w+)\s+\((\d+)\)"), _executor),
    Recognizer("discovered", re.compile(r"\[-\s+\]\s+(?:process\s*>\s*)?([^\s]+)\s+-?$"), _discovered),
    Recognizer("progress", _PROGRESS, _progress),
    Recognizer(
        "task_completed",
        re.compile(r"\[([^\]]+)\]\s+(\w+):([^\s]+)(?:\s+\(([^)]+)\))?\s*✔"),
        _task_completed,
    ),
    Recognizer("completed", _COMPLETION, _completed),
    Recognizer("error", re.compile(r"ERROR ~ (.+)"), _error),
    Recognizer("failed", re.compile(r"Execution failed"), _failed),
    Recognizer(
        "failed_exit_code",
        re.compile(r"(?:Process completed|execution failed) with exit code:\s*(-?\d+)"),
        _failed_exit_code,
    ),
    Recognizer("cancelled", re.compile(r"Execution cancelled"), _cancelled),
)


def classify(line: str, recognizers: tuple[Recognizer, ...] = RECOGNIZERS) -> ExecutionEvent:
    """Classify one engine output line. First matching recognizer wins."""
    text = line.rstrip("\r\n")
    for recognizer in recognizers:
        match = recognizer.pattern.search(text)
        if match is not None:
            return recognizer.handler(match, text)
    return ExecutionEvent.unclassified(text)
