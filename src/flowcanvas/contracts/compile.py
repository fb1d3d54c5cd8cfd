"""Compilation inputs, intermediate artifacts and results.

These types answer: "What did a compilation pass produce?"

All records are frozen. A compilation pass never mutates the graph document
and never raises for malformed content; problems travel as Diagnostic records
on the CompileResult.
"""

from dataclasses import dataclass, field

from flowcanvas.contracts.enums import DiagnosticKind, StatementKind
from flowcanvas.contracts.graph import StageResources

DEFAULT_RESOURCES = StageResources(
    cpus=1,
    memory="2.GB",
    time_limit="1.h",
    container="ubuntu:22.04",
)


@dataclass(frozen=True)
class Diagnostic:
    """A recoverable problem found while compiling.

    Attributes:
        kind: What went wrong
        message: Human-readable description
        node_id: Node the problem belongs to, if any
        edge: Edge description (``src.port -> dst.port``), if any
    """

    kind: DiagnosticKind
    message: str
    node_id: str | None = None
    edge: str | None = None

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


@dataclass(frozen=True)
class Channel:
    """A named conduit produced by one (node, output port) pair."""

    name: str
    node_id: str
    port: str


@dataclass(frozen=True)
class StageDefinition:
    """The emitted ``process`` block for one node."""

    node_id: str
    process_name: str
    text: str


@dataclass(frozen=True)
class InvocationStatement:
    """One line of the ``workflow`` block.

    ``reads`` lists the channels consumed and ``writes`` the channels
    declared. The orderer places every statement after the producers of
    everything it reads.
    """

    kind: StatementKind
    text: str
    node_id: str
    reads: tuple[str, ...] = ()
    writes: tuple[str, ...] = ()
    comment: str | None = None

    @property
    def is_output(self) -> bool:
        return self.kind is StatementKind.OUTPUT

    def render(self, indent: str = "    ") -> list[str]:
        lines = []
        if self.comment:
            lines.append(f"{indent}// {self.comment}")
        lines.append(f"{indent}{self.text}")
        return lines


@dataclass(frozen=True)
class CompileOptions:
    """Compile-time parameters supplied alongside the graph.

    ``timestamp`` and ``date`` are explicit so that compiling the same graph
    with the same options is byte-for-byte reproducible.
    """

    run_name: str = "workflow"
    output_dir: str = "results"
    naming_pattern: str = "{workflow_name}_{timestamp}_{process_name}"
    input_dir: str = "./inputs"
    timestamp: str = "19700101T000000"
    date: str = "1970-01-01"
    default_resources: StageResources = field(default_factory=lambda: DEFAULT_RESOURCES)


@dataclass(frozen=True)
class CompileResult:
    """Everything one compilation pass produced.

    Attributes:
        script: The assembled script text
        diagnostics: Recoverable problems, in deterministic order
        definitions: Stage definitions in discovery order
        statements: Invocation statements in final order (outputs last)
        channels: Every channel the binder registered
        script_hash: SHA-256 of the script text
        graph_hash: Canonical hash of the graph document
        hash_version: Canonicalization scheme behind ``graph_hash``
    """

    script: str
    diagnostics: tuple[Diagnostic, ...] = ()
    definitions: tuple[StageDefinition, ...] = ()
    statements: tuple[InvocationStatement, ...] = ()
    channels: tuple[Channel, ...] = ()
    script_hash: str = ""
    graph_hash: str = ""
    hash_version: str = ""

    @property
    def ok(self) -> bool:
        """True when compilation produced no diagnostics."""
        return not self.diagnostics

    def diagnostics_of(self, kind: DiagnosticKind) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.kind is kind]
