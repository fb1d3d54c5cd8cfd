"""All status codes, modes, and kinds used across subsystem boundaries."""

from enum import Enum


class StageKind(str, Enum):
    """Role of a node in the pipeline graph.

    Uses (str, Enum) because this IS serialized in graph documents.
    """

    SOURCE = "source"
    OPERATOR = "operator"
    STAGE = "stage"
    SINK = "sink"


class PortMultiplicity(str, Enum):
    """How many items a port emits per invocation."""

    ONE = "one"
    MANY = "many"


class StatementKind(str, Enum):
    """Kind of a compiled workflow statement.

    OUTPUT statements publish results and are ordered after everything else.
    SELECTION statements narrow an upstream channel to named files.
    """

    INVOKE = "invoke"
    SELECTION = "selection"
    OUTPUT = "output"


class DiagnosticKind(str, Enum):
    """Category of a non-fatal compile diagnostic."""

    BINDING_ALIAS = "binding_alias"
    BINDING_FALLBACK = "binding_fallback"
    UNRESOLVED_EDGE = "unresolved_edge"
    MISSING_INPUT = "missing_input"
    IGNORED_INPUT = "ignored_input"
    CYCLIC_DEPENDENCY = "cyclic_dependency"
    DROPPED_DEPENDENT = "dropped_dependent"
    UNSUPPORTED_STAGE = "unsupported_stage"


class RunState(str, Enum):
    """Lifecycle state of one engine run as seen by the tracker.

    idle -> running -> {completed | failed | cancelled} -> idle
    """

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.COMPLETED, RunState.FAILED, RunState.CANCELLED)


class NodeRunStatus(str, Enum):
    """Status of one tracked stage within a run."""

    WAITING = "waiting"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (NodeRunStatus.SUCCESS, NodeRunStatus.ERROR, NodeRunStatus.SKIPPED)


class EventKind(Enum):
    """Semantic class of one engine output line.

    Derived on the fly from log text and never stored, so plain Enum.
    """

    WORKFLOW_LAUNCHED = "workflow_launched"
    EXECUTOR_SUMMARY = "executor_summary"
    STAGE_DISCOVERED = "stage_discovered"
    STAGE_PROGRESS = "stage_progress"
    TASK_COMPLETED = "task_completed"
    WORKFLOW_COMPLETED = "workflow_completed"
    WORKFLOW_ERROR = "workflow_error"
    WORKFLOW_FAILED = "workflow_failed"
    WORKFLOW_CANCELLED = "workflow_cancelled"
    UNCLASSIFIED = "unclassified"


class EngineMode(str, Enum):
    """Where the Nextflow engine itself runs."""

    LOCAL = "local"
    CONTAINER = "container"
