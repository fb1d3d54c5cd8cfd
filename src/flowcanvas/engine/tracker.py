# src/flowcanvas/engine/tracker.py
"""Execution Status Tracker.

Consumes engine output lines in stream order and maintains an immutable
WorkflowExecutionStatus snapshot:

    idle -> running -> {completed | failed | cancelled} -> idle

The return to idle happens in ``poll()`` once the display window after a
terminal state has elapsed. Terminal states are sticky: lines arriving
after completion, failure or cancellation are classified but not applied.

The tracker is single-writer: every mutation (line intake, lifecycle calls,
``poll``) runs under one lock, so a ``cancel_run`` from another thread is
never overwritten by a line being applied concurrently. Observers
subscribe and receive each new snapshot; they never see a snapshot being
modified.
"""

import threading
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import UTC, datetime, timedelta

from flowcanvas.contracts.enums import EventKind, NodeRunStatus, RunState
from flowcanvas.contracts.status import (
    ExecutionEvent,
    NodeExecutionStatus,
    WorkflowExecutionStatus,
)
from flowcanvas.core.config import TrackerSettings
from flowcanvas.core.logging import get_logger
from flowcanvas.engine.recognizers import RECOGNIZERS, Recognizer, classify, display_name

logger = get_logger(__name__)

Subscriber = Callable[[WorkflowExecutionStatus], None]
Clock = Callable[[], datetime]
Canceller = Callable[[str], bool]

_OPEN_STATUSES = (NodeRunStatus.RUNNING, NodeRunStatus.WAITING)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _overall_progress(nodes: tuple[NodeExecutionStatus, ...]) -> float:
    if not nodes:
        return 0.0
    finished = sum(1 for n in nodes if n.status.is_terminal)
    return finished / len(nodes) * 100.0


class ExecutionStatusTracker:
    """Stateful parser turning engine output into status snapshots.

    Args:
        settings: Display windows for the auto-reset
        clock: Returns the current time; injectable for tests
        canceller: Cancellation facility, called with the run id by
            ``cancel_run``; returns whether a live process was found
        recognizers: Ordered line recognizers

    Example:
        tracker = ExecutionStatusTracker()
        tracker.start_run("demo_1700000000000")
        tracker.feed_line("[a1/b2c3] filter_node_42 | 1 of 1 ✔")
        tracker.snapshot.node("filter_node_42").status  # NodeRunStatus.SUCCESS
    """

    def __init__(
        self,
        settings: TrackerSettings | None = None,
        *,
        clock: Clock | None = None,
        canceller: Canceller | None = None,
        recognizers: tuple[Recognizer, ...] = RECOGNIZERS,
    ) -> None:
        self._settings = settings or TrackerSettings()
        self._clock = clock or _utc_now
        self._canceller = canceller
        self._recognizers = recognizers
        self._snapshot = WorkflowExecutionStatus.idle()
        self._subscribers: list[Subscriber] = []
        self._pending = ""
        self._reset_at: datetime | None = None
        # Reentrant so subscribers may feed or poll from inside a callback
        self._lock = threading.RLock()

    @property
    def snapshot(self) -> WorkflowExecutionStatus:
        return self._snapshot

    @property
    def reset_at(self) -> datetime | None:
        """When ``poll()`` will clear a finished run, if one is pending."""
        return self._reset_at

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register an observer; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # Run lifecycle

    def start_run(self, run_id: str | None = None) -> WorkflowExecutionStatus:
        """Begin a new run, discarding every stage entry of the previous one."""
        with self._lock:
            self._pending = ""
            self._reset_at = None
            self._publish(
                WorkflowExecutionStatus(
                    state=RunState.RUNNING,
                    run_id=run_id,
                    started_at=self._clock(),
                    current_stage="Starting workflow execution...",
                )
            )
            logger.info("run_started", run_id=run_id)
            return self._snapshot

    def complete_run(self, success: bool, error: str | None = None) -> WorkflowExecutionStatus:
        """Apply the process exit outcome to a run still marked running.

        Stages still running or waiting become ``success`` or ``error``.
        """
        with self._lock:
            current = self._snapshot
            if current.state is not RunState.RUNNING:
                return current
            if success:
                self._publish(self._completed(current))
                return self._snapshot

            message = error or "Execution failed"
            now = self._clock()
            self._publish(
                replace(
                    current,
                    state=RunState.FAILED,
                    ended_at=now,
                    nodes=self._close_open_nodes(current.nodes, NodeRunStatus.ERROR, now, message),
                    progress=100.0,
                    current_stage="Workflow failed",
                    error=message,
                )
            )
            self._schedule_reset(self._settings.completion_display_seconds)
            logger.info("run_failed", run_id=current.run_id, error=message)
            return self._snapshot

    def cancel_run(self) -> WorkflowExecutionStatus:
        """Signal the engine to stop and mark the run cancelled immediately.

        Stages still running or waiting become ``skipped``. The process may
        still be unwinding when this returns.
        """
        with self._lock:
            current = self._snapshot
            if current.state is not RunState.RUNNING:
                return current

            if self._canceller is not None and current.run_id is not None:
                try:
                    found = self._canceller(current.run_id)
                except Exception as exc:
                    logger.warning("cancel_failed", run_id=current.run_id, error=str(exc))
                else:
                    if not found:
                        logger.warning("cancel_no_process", run_id=current.run_id)

            self._publish(self._cancelled(current, "Workflow cancelled"))
            logger.info("run_cancelled", run_id=current.run_id)
            return self._snapshot

    def poll(self) -> WorkflowExecutionStatus:
        """Clear a finished run once its display window has passed."""
        with self._lock:
            if self._reset_at is not None and self._clock() >= self._reset_at:
                run_id = self._snapshot.run_id
                self._reset_at = None
                self._publish(WorkflowExecutionStatus.idle())
                logger.info("run_reset", run_id=run_id)
            return self._snapshot

    # Line intake

    def feed_line(self, line: str) -> ExecutionEvent:
        """Classify and apply one line; subscribers are notified on change."""
        event = classify(line, self._recognizers)
        with self._lock:
            self._publish(self._apply(self._snapshot, event))
        return event

    def feed_lines(self, lines: Iterable[str]) -> list[ExecutionEvent]:
        """Apply a batch of lines in order and notify once."""
        events = [classify(line, self._recognizers) for line in lines]
        with self._lock:
            updated = self._snapshot
            for event in events:
                updated = self._apply(updated, event)
            self._publish(updated)
        return events

    def feed_chunk(self, chunk: str) -> list[ExecutionEvent]:
        """Apply every complete line in a raw stream chunk.

        A trailing partial line is buffered until the next chunk or ``flush()``.
        """
        with self._lock:
            lines = (self._pending + chunk).split("\n")
            self._pending = lines.pop()
            return self.feed_lines(lines)

    def flush(self) -> list[ExecutionEvent]:
        """Apply a buffered partial line, if any."""
        with self._lock:
            if not self._pending:
                return []
            pending, self._pending = self._pending, ""
            return self.feed_lines([pending])

    # Event application

    def _apply(self, current: WorkflowExecutionStatus, event: ExecutionEvent) -> WorkflowExecutionStatus:
        if current.state is not RunState.RUNNING:
            return current

        kind = event.kind
        if kind in (EventKind.WORKFLOW_LAUNCHED, EventKind.EXECUTOR_SUMMARY, EventKind.TASK_COMPLETED):
            return replace(current, current_stage=event.message or current.current_stage)
        if kind is EventKind.STAGE_PROGRESS:
            return self._apply_progress(current, event)
        if kind is EventKind.WORKFLOW_COMPLETED:
            return self._completed(current)
        if kind in (EventKind.WORKFLOW_ERROR, EventKind.WORKFLOW_FAILED):
            return self._failed(current, event)
        if kind is EventKind.WORKFLOW_CANCELLED:
            logger.info("run_cancelled", run_id=current.run_id, line=event.line)
            return self._cancelled(current, event.message or "Workflow cancelled")
        # Stage discovery and unclassified chatter change nothing
        return current

    def _apply_progress(self, current: WorkflowExecutionStatus, event: ExecutionEvent) -> WorkflowExecutionStatus:
        assert event.stage_name is not None
        completed = event.completed or 0
        total = event.total or 0
        percent = min(completed / total * 100.0, 100.0) if total > 0 else 0.0
        finished = total > 0 and completed >= total
        now = self._clock()
        label = display_name(event.stage_name)

        nodes = list(current.nodes)
        index = next((i for i, n in enumerate(nodes) if n.key == event.stage_name), None)
        if index is None:
            nodes.append(self._new_node(event.stage_name, label, percent, finished, event, now))
        else:
            nodes[index] = self._update_node(nodes[index], percent, finished, event, now)

        updated_nodes = tuple(nodes)
        return replace(
            current,
            nodes=updated_nodes,
            progress=_overall_progress(updated_nodes),
            current_stage=f"{label}: {completed}/{total}",
        )

    @staticmethod
    def _new_node(
        key: str,
        label: str,
        percent: float,
        finished: bool,
        event: ExecutionEvent,
        now: datetime,
    ) -> NodeExecutionStatus:
        if not finished:
            status = NodeRunStatus.RUNNING
        elif event.is_failure_marker:
            status = NodeRunStatus.ERROR
        else:
            status = NodeRunStatus.SUCCESS
        return NodeExecutionStatus(
            key=key,
            display_name=label,
            status=status,
            started_at=now,
            ended_at=now if status.is_terminal else None,
            progress=percent,
            error=event.line.strip() if status is NodeRunStatus.ERROR else None,
        )

    @staticmethod
    def _update_node(
        node: NodeExecutionStatus,
        percent: float,
        finished: bool,
        event: ExecutionEvent,
        now: datetime,
    ) -> NodeExecutionStatus:
        if node.status.is_terminal:
            # Only a late failure marker may still move success to error
            if node.status is NodeRunStatus.SUCCESS and finished and event.is_failure_marker:
                return replace(node, status=NodeRunStatus.ERROR, error=event.line.strip())
            return node

        progress = max(node.progress or 0.0, percent)
        if not finished:
            status = NodeRunStatus.RUNNING
        elif event.is_failure_marker:
            status = NodeRunStatus.ERROR
        else:
            status = NodeRunStatus.SUCCESS
        return replace(
            node,
            status=status,
            progress=progress,
            started_at=node.started_at or now,
            ended_at=now if status.is_terminal else None,
            error=event.line.strip() if status is NodeRunStatus.ERROR else None,
        )

    def _completed(self, current: WorkflowExecutionStatus) -> WorkflowExecutionStatus:
        now = self._clock()
        self._schedule_reset(self._settings.completion_display_seconds)
        logger.info("run_completed", run_id=current.run_id, stages=current.total_count)
        return replace(
            current,
            state=RunState.COMPLETED,
            ended_at=now,
            nodes=self._close_open_nodes(current.nodes, NodeRunStatus.SUCCESS, now),
            progress=100.0,
            current_stage="Nextflow execution completed successfully",
        )

    def _cancelled(self, current: WorkflowExecutionStatus, stage: str) -> WorkflowExecutionStatus:
        now = self._clock()
        nodes = self._close_open_nodes(current.nodes, NodeRunStatus.SKIPPED, now)
        completed = sum(1 for n in nodes if n.status is NodeRunStatus.SUCCESS)
        self._schedule_reset(self._settings.cancel_display_seconds)
        return replace(
            current,
            state=RunState.CANCELLED,
            ended_at=now,
            nodes=nodes,
            progress=completed / len(nodes) * 100.0 if nodes else 0.0,
            current_stage=stage,
        )

    def _failed(self, current: WorkflowExecutionStatus, event: ExecutionEvent) -> WorkflowExecutionStatus:
        now = self._clock()
        message = event.message or event.line.strip()
        nodes = self._close_open_nodes(current.nodes, NodeRunStatus.ERROR, now, message)
        self._schedule_reset(self._settings.completion_display_seconds)
        logger.info("run_failed", run_id=current.run_id, error=message, exit_code=event.exit_code)
        stage = f"Error: {message}" if event.kind is EventKind.WORKFLOW_ERROR else message
        return replace(
            current,
            state=RunState.FAILED,
            ended_at=now,
            nodes=nodes,
            progress=_overall_progress(nodes),
            current_stage=stage,
            error=message,
        )

    @staticmethod
    def _close_open_nodes(
        nodes: tuple[NodeExecutionStatus, ...],
        status: NodeRunStatus,
        now: datetime,
        error: str | None = None,
    ) -> tuple[NodeExecutionStatus, ...]:
        closed = []
        for node in nodes:
            if node.status in _OPEN_STATUSES:
                node = replace(
                    node,
                    status=status,
                    ended_at=node.ended_at or now,
                    progress=100.0 if status is NodeRunStatus.SUCCESS else node.progress,
                    error=error if status is NodeRunStatus.ERROR else None,
                )
            closed.append(node)
        return tuple(closed)

    def _schedule_reset(self, seconds: float) -> None:
        self._reset_at = self._clock() + timedelta(seconds=seconds)

    def _publish(self, snapshot: WorkflowExecutionStatus) -> None:
        if snapshot == self._snapshot:
            return
        self._snapshot = snapshot
        for callback in list(self._subscribers):
            callback(snapshot)
