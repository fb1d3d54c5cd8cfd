"""Shared contracts for cross-boundary data types.

Everything the compiler, the tracker and the CLI exchange is defined here.

Import pattern:
    from flowcanvas.contracts import GraphDocument, CompileResult, RunState
"""

from flowcanvas.contracts.enums import (
    DiagnosticKind,
    EngineMode,
    EventKind,
    NodeRunStatus,
    PortMultiplicity,
    RunState,
    StageKind,
    StatementKind,
)
from flowcanvas.contracts.errors import (
    GraphDocumentError,
    TemplateError,
    UnknownStageTemplateError,
)
from flowcanvas.contracts.params import (
    FastQCParams,
    FileSourceParams,
    FilterParams,
    GenericStageParams,
    MapParams,
    MergeParams,
    OutputParams,
    StageParams,
    TrimmomaticParams,
    UnsupportedParams,
)
from flowcanvas.contracts.graph import (
    ChannelEdge,
    GraphDocument,
    InputPort,
    OutputPort,
    StageNode,
    StageResources,
)
from flowcanvas.contracts.compile import (
    Channel,
    CompileOptions,
    CompileResult,
    Diagnostic,
    InvocationStatement,
    StageDefinition,
)
from flowcanvas.contracts.status import (
    ExecutionEvent,
    NodeExecutionStatus,
    WorkflowExecutionStatus,
)

__all__ = [
    # enums
    "DiagnosticKind",
    "EngineMode",
    "EventKind",
    "NodeRunStatus",
    "PortMultiplicity",
    "RunState",
    "StageKind",
    "StatementKind",
    # errors
    "GraphDocumentError",
    "TemplateError",
    "UnknownStageTemplateError",
    # params
    "FastQCParams",
    "FileSourceParams",
    "FilterParams",
    "GenericStageParams",
    "MapParams",
    "MergeParams",
    "OutputParams",
    "StageParams",
    "TrimmomaticParams",
    "UnsupportedParams",
    # graph
    "ChannelEdge",
    "GraphDocument",
    "InputPort",
    "OutputPort",
    "StageNode",
    "StageResources",
    # compile
    "Channel",
    "CompileOptions",
    "CompileResult",
    "Diagnostic",
    "InvocationStatement",
    "StageDefinition",
    # status
    "ExecutionEvent",
    "NodeExecutionStatus",
    "WorkflowExecutionStatus",
]
