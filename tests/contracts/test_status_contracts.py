# tests/contracts/test_status_contracts.py
"""Tests for status snapshots, execution events and compile records."""

from datetime import UTC, datetime

import pytest


class TestWorkflowExecutionStatus:
    """Derived counts and serialization."""

    def test_idle_snapshot(self) -> None:
        from flowcanvas.contracts import RunState, WorkflowExecutionStatus

        status = WorkflowExecutionStatus.idle()

        assert status.state is RunState.IDLE
        assert status.total_count == 0
        assert status.progress == 0.0
        assert not status.is_running

    def test_counts_follow_nodes(self) -> None:
        from flowcanvas.contracts import NodeExecutionStatus, NodeRunStatus, WorkflowExecutionStatus

        status = WorkflowExecutionStatus(
            nodes=(
                NodeExecutionStatus("a", "A", NodeRunStatus.SUCCESS),
                NodeExecutionStatus("b", "B", NodeRunStatus.ERROR),
                NodeExecutionStatus("c", "C", NodeRunStatus.RUNNING),
                NodeExecutionStatus("d", "D", NodeRunStatus.RUNNING),
            )
        )

        assert status.total_count == 4
        assert status.completed_count == 1
        assert status.failed_count == 1
        assert status.running_count == 2

    def test_node_lookup(self) -> None:
        from flowcanvas.contracts import NodeExecutionStatus, WorkflowExecutionStatus

        status = WorkflowExecutionStatus(nodes=(NodeExecutionStatus("filter_node_1", "Filter"),))

        assert status.node("filter_node_1") is not None
        assert status.node("missing") is None

    def test_to_dict(self) -> None:
        from flowcanvas.contracts import NodeExecutionStatus, RunState, WorkflowExecutionStatus

        started = datetime(2025, 1, 1, tzinfo=UTC)
        status = WorkflowExecutionStatus(
            state=RunState.RUNNING,
            run_id="demo_1",
            started_at=started,
            nodes=(NodeExecutionStatus("k", "K", progress=50.0),),
        )

        data = status.to_dict()

        assert data["state"] == "running"
        assert data["started_at"] == started.isoformat()
        assert data["ended_at"] is None
        assert data["nodes"][0]["status"] == "waiting"
        assert data["nodes"][0]["progress"] == 50.0

    def test_snapshot_is_frozen(self) -> None:
        from dataclasses import FrozenInstanceError

        from flowcanvas.contracts import WorkflowExecutionStatus

        status = WorkflowExecutionStatus.idle()

        with pytest.raises(FrozenInstanceError):
            status.progress = 50.0  # type: ignore[misc]


class TestEnums:
    """Terminal-state helpers."""

    def test_run_state_terminal(self) -> None:
        from flowcanvas.contracts import RunState

        assert not RunState.IDLE.is_terminal
        assert not RunState.RUNNING.is_terminal
        assert RunState.COMPLETED.is_terminal
        assert RunState.FAILED.is_terminal
        assert RunState.CANCELLED.is_terminal

    def test_node_status_terminal(self) -> None:
        from flowcanvas.contracts import NodeRunStatus

        assert NodeRunStatus.SUCCESS.is_terminal
        assert NodeRunStatus.ERROR.is_terminal
        assert NodeRunStatus.SKIPPED.is_terminal
        assert not NodeRunStatus.RUNNING.is_terminal
        assert not NodeRunStatus.WAITING.is_terminal

    def test_serialized_enums_are_strings(self) -> None:
        from flowcanvas.contracts import DiagnosticKind, StageKind

        assert StageKind.SINK == "sink"
        assert DiagnosticKind.CYCLIC_DEPENDENCY.value == "cyclic_dependency"


class TestCompileRecords:
    """Diagnostic and statement rendering."""

    def test_diagnostic_str(self) -> None:
        from flowcanvas.contracts import Diagnostic, DiagnosticKind

        diagnostic = Diagnostic(DiagnosticKind.MISSING_INPUT, "Node 'x' has no input", node_id="x")

        assert str(diagnostic) == "[missing_input] Node 'x' has no input"

    def test_statement_render_with_comment(self) -> None:
        from flowcanvas.contracts import InvocationStatement, StatementKind

        statement = InvocationStatement(
            kind=StatementKind.OUTPUT,
            text="save_Result_s(ch.collect())",
            node_id="s",
            comment="Save output from: Result",
        )

        assert statement.is_output
        assert statement.render() == [
            "    // Save output from: Result",
            "    save_Result_s(ch.collect())",
        ]

    def test_compile_result_ok(self) -> None:
        from flowcanvas.contracts import CompileResult, Diagnostic, DiagnosticKind

        assert CompileResult(script="").ok
        result = CompileResult(
            script="",
            diagnostics=(Diagnostic(DiagnosticKind.UNRESOLVED_EDGE, "dropped"),),
        )
        assert not result.ok
        assert len(result.diagnostics_of(DiagnosticKind.UNRESOLVED_EDGE)) == 1
        assert result.diagnostics_of(DiagnosticKind.MISSING_INPUT) == []
