"""Execution events and status snapshots.

These types answer: "What is the engine doing right now?"

Snapshots are immutable. The tracker derives a new snapshot for every change
and hands it to subscribers; nothing mutates a snapshot after publication.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from flowcanvas.contracts.enums import EventKind, NodeRunStatus, RunState

# Progress line markers the engine prints for failed tasks
FAILURE_MARKERS = frozenset({"❌", "✘"})


@dataclass(frozen=True)
class ExecutionEvent:
    """A classified unit derived from one raw engine output line.

    Only the fields relevant to ``kind`` are populated.
    """

    kind: EventKind
    line: str
    stage_name: str | None = None
    task_id: str | None = None
    completed: int | None = None
    total: int | None = None
    marker: str | None = None
    message: str | None = None
    exit_code: int | None = None

    @classmethod
    def unclassified(cls, line: str) -> "ExecutionEvent":
        return cls(kind=EventKind.UNCLASSIFIED, line=line)

    @property
    def is_failure_marker(self) -> bool:
        return self.marker in FAILURE_MARKERS


@dataclass(frozen=True)
class NodeExecutionStatus:
    """Progress of one stage as named by the engine.

    ``key`` is the engine's process name, which is only discovered at run
    time and is distinct from the editor's node id.
    """

    key: str
    display_name: str
    status: NodeRunStatus = NodeRunStatus.WAITING
    started_at: datetime | None = None
    ended_at: datetime | None = None
    progress: float | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "display_name": self.display_name,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "progress": self.progress,
            "error": self.error,
        }


@dataclass(frozen=True)
class WorkflowExecutionStatus:
    """Aggregate status of one run.

    Counts are derived from ``nodes`` so they can never disagree with it.
    """

    state: RunState = RunState.IDLE
    run_id: str | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    nodes: tuple[NodeExecutionStatus, ...] = field(default_factory=tuple)
    current_stage: str = ""
    progress: float = 0.0
    error: str | None = None

    @classmethod
    def idle(cls) -> "WorkflowExecutionStatus":
        return cls()

    @property
    def is_running(self) -> bool:
        return self.state is RunState.RUNNING

    @property
    def total_count(self) -> int:
        return len(self.nodes)

    @property
    def completed_count(self) -> int:
        return sum(1 for n in self.nodes if n.status is NodeRunStatus.SUCCESS)

    @property
    def failed_count(self) -> int:
        return sum(1 for n in self.nodes if n.status is NodeRunStatus.ERROR)

    @property
    def running_count(self) -> int:
        return sum(1 for n in self.nodes if n.status is NodeRunStatus.RUNNING)

    @property
    def skipped_count(self) -> int:
        return sum(1 for n in self.nodes if n.status is NodeRunStatus.SKIPPED)

    def node(self, key: str) -> NodeExecutionStatus | None:
        for node in self.nodes:
            if node.key == key:
                return node
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "run_id": self.run_id,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "total": self.total_count,
            "completed": self.completed_count,
            "failed": self.failed_count,
            "running": self.running_count,
            "skipped": self.skipped_count,
            "current_stage": self.current_stage,
            "progress": self.progress,
            "error": self.error,
            "nodes": [n.to_dict() for n in self.nodes],
        }
