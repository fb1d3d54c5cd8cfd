# tests/conftest.py
"""Shared test fixtures and helpers.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/compiler/
"""

import os
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
import structlog
from hypothesis import Phase, Verbosity, settings

from flowcanvas.contracts import ChannelEdge, GraphDocument, StageNode

# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Graph helpers
# =============================================================================


def node(node_id: str, params: dict[str, Any], **extra: Any) -> StageNode:
    """Build a StageNode with catalog default ports."""
    return StageNode.model_validate({"id": node_id, "params": params, **extra})


def edge(
    source: str,
    target: str,
    source_port: str | None = "out",
    target_port: str | None = "in",
) -> ChannelEdge:
    return ChannelEdge(source=source, source_port=source_port, target=target, target_port=target_port)


def example_document() -> GraphDocument:
    """source → filter (contains 'PASS') → sink."""
    return GraphDocument(
        nodes=[
            node("src", {"type": "file_source", "files": ["reads.txt"]}),
            node("node_42", {"type": "filter", "text": "PASS", "mode": "contains"}),
            node("sink", {"type": "output", "label": "Result"}),
        ],
        edges=[
            edge("src", "node_42"),
            edge("node_42", "sink"),
        ],
    )


class FakeClock:
    """Manually advanced clock for tracker tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture(autouse=True)
def _reset_structlog() -> Any:
    """Undo configure_logging() after each test so no logger keeps a closed capture stream."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def example_graph() -> GraphDocument:
    return example_document()


@pytest.fixture
def make_node() -> Any:
    return node


@pytest.fixture
def make_edge() -> Any:
    return edge


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
