"""Engine integration: output classification, status tracking and process launch."""

from flowcanvas.engine.recognizers import RECOGNIZERS, Recognizer, classify, display_name
from flowcanvas.engine.runner import (
    CancellationRegistry,
    EngineCommand,
    EngineRunner,
    RunOutcome,
    RunWorkspace,
    build_engine_command,
    make_run_id,
)
from flowcanvas.engine.tracker import ExecutionStatusTracker

__all__ = [
    "RECOGNIZERS",
    "CancellationRegistry",
    "EngineCommand",
    "EngineRunner",
    "ExecutionStatusTracker",
    "Recognizer",
    "RunOutcome",
    "RunWorkspace",
    "build_engine_command",
    "classify",
    "display_name",
    "make_run_id",
]
