"""Core infrastructure: configuration, logging, graph wrapper, canonical hashing."""

from flowcanvas.core.canonical import (
    CANONICAL_VERSION,
    canonical_json,
    stable_hash,
    text_hash,
)
from flowcanvas.core.config import (
    CompileSettings,
    EngineSettings,
    FlowCanvasSettings,
    LoggingSettings,
    ResourceDefaults,
    TrackerSettings,
    default_settings,
    load_settings,
)
from flowcanvas.core.graph import PipelineGraph, load_graph_document

__all__ = [
    "CANONICAL_VERSION",
    "CompileSettings",
    "EngineSettings",
    "FlowCanvasSettings",
    "LoggingSettings",
    "PipelineGraph",
    "ResourceDefaults",
    "TrackerSettings",
    "canonical_json",
    "default_settings",
    "load_graph_document",
    "load_settings",
    "stable_hash",
    "text_hash",
]
