"""Invocation Orderer: dependency-respecting total order of workflow statements.

Statements are sorted depth-first over a networkx dependency graph built
once from the channel → producer map: an edge runs from the producer of a
channel to each statement reading it, keyed by the channel name. A
statement is placed only after the producers of every channel it reads.
Independent statements keep discovery order.

The walk uses an explicit stack, so chain length is not bounded by the
interpreter's recursion limit.

Cycles never stall the sort: the statement that closes a cycle is dropped
with a ``cyclic_dependency`` diagnostic, and anything reading a channel of a
dropped statement is dropped with ``dropped_dependent``. Output statements
form a trailing group after every other statement.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field

import networkx as nx

from flowcanvas.contracts.compile import Diagnostic, InvocationStatement
from flowcanvas.contracts.enums import DiagnosticKind


@dataclass
class SortContext:
    """Mutable state of one sort: never shared between compilations."""

    emitted: set[int] = field(default_factory=set)
    visiting: list[int] = field(default_factory=list)
    on_path: set[int] = field(default_factory=set)
    dropped: set[int] = field(default_factory=set)
    order: list[int] = field(default_factory=list)


@dataclass
class _Frame:
    index: int
    requires: list[tuple[str, int]]
    position: int = 0


class InvocationOrderer:
    """Orders the statements of one compilation.

    Args:
        statements: Candidate statements in discovery order
        external_channels: Channels defined outside the workflow block
            (source channels); reading them imposes no ordering constraint
        diagnostics: Shared diagnostic list for this compilation
    """

    def __init__(
        self,
        statements: Sequence[InvocationStatement],
        external_channels: set[str],
        diagnostics: list[Diagnostic],
    ) -> None:
        self._statements = list(statements)
        self._external = external_channels
        self._diagnostics = diagnostics
        self._producers: dict[str, int] = {}
        for index, statement in enumerate(self._statements):
            for channel in statement.writes:
                self._producers.setdefault(channel, index)
        self._deps = self._build_dependency_graph()

    def _build_dependency_graph(self) -> nx.MultiDiGraph:
        deps = nx.MultiDiGraph()
        for index in range(len(self._statements)):
            deps.add_node(index, undefined=[])
        for index, statement in enumerate(self._statements):
            for channel in statement.reads:
                if channel in self._external:
                    continue
                producer = self._producers.get(channel)
                if producer is None:
                    deps.nodes[index]["undefined"].append(channel)
                else:
                    deps.add_edge(producer, index, key=channel)
        return deps

    @property
    def dependency_graph(self) -> nx.MultiDiGraph:
        """Statement indices; edge producer -> reader keyed by channel name."""
        return self._deps

    def order(self) -> list[InvocationStatement]:
        """Return surviving statements, non-output group first."""
        ctx = SortContext()
        for index in range(len(self._statements)):
            self._visit(index, ctx)

        ordered = [self._statements[i] for i in ctx.order]
        return [s for s in ordered if not s.is_output] + [s for s in ordered if s.is_output]

    def _visit(self, root: int, ctx: SortContext) -> None:
        if root in ctx.emitted or root in ctx.dropped:
            return
        if not self._enter(root, ctx):
            return

        stack = [self._frame(root)]
        while stack:
            frame = stack[-1]
            statement = self._statements[frame.index]

            if frame.position == len(frame.requires):
                self._leave(stack, ctx)
                ctx.emitted.add(frame.index)
                ctx.order.append(frame.index)
                continue

            channel, producer = frame.requires[frame.position]
            if producer in ctx.emitted:
                frame.position += 1
            elif producer in ctx.dropped:
                self._drop(
                    frame.index,
                    ctx,
                    DiagnosticKind.DROPPED_DEPENDENT,
                    f"Statement for node '{statement.node_id}' reads '{channel}' from an "
                    f"omitted statement and was omitted",
                )
                self._leave(stack, ctx)
            elif producer in ctx.on_path:
                self._drop(
                    frame.index,
                    ctx,
                    DiagnosticKind.CYCLIC_DEPENDENCY,
                    f"Dependency cycle {self._describe_cycle(producer, ctx)}; "
                    f"statement for node '{statement.node_id}' was omitted",
                )
                self._leave(stack, ctx)
            elif self._enter(producer, ctx):
                stack.append(self._frame(producer))
            # A producer rejected on entry is now dropped; the next pass drops this frame

    def _frame(self, index: int) -> _Frame:
        requires = [(channel, producer) for producer, _, channel in self._deps.in_edges(index, keys=True)]
        return _Frame(index, requires)

    def _enter(self, index: int, ctx: SortContext) -> bool:
        undefined = self._deps.nodes[index]["undefined"]
        if undefined:
            self._drop(
                index,
                ctx,
                DiagnosticKind.DROPPED_DEPENDENT,
                f"Statement for node '{self._statements[index].node_id}' reads undefined channel "
                f"'{undefined[0]}' and was omitted",
            )
            return False
        ctx.visiting.append(index)
        ctx.on_path.add(index)
        return True

    @staticmethod
    def _leave(stack: list[_Frame], ctx: SortContext) -> None:
        frame = stack.pop()
        ctx.visiting.pop()
        ctx.on_path.discard(frame.index)

    def _describe_cycle(self, producer: int, ctx: SortContext) -> str:
        path = ctx.visiting[ctx.visiting.index(producer) :] + [producer]
        return " -> ".join(self._statements[i].node_id for i in path)

    def _drop(self, index: int, ctx: SortContext, kind: DiagnosticKind, message: str) -> None:
        ctx.dropped.add(index)
        self._diagnostics.append(
            Diagnostic(kind=kind, message=message, node_id=self._statements[index].node_id)
        )
