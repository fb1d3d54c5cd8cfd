"""Built-in stage templates."""

from flowcanvas.plugins.stages.generic import GenericStage, UnsupportedStage
from flowcanvas.plugins.stages.operators import FilterOperator, MapOperator, MergeOperator
from flowcanvas.plugins.stages.outputs import OutputDisplay
from flowcanvas.plugins.stages.presets import FastQCPreset, TrimmomaticPreset

__all__ = [
    "FastQCPreset",
    "FilterOperator",
    "GenericStage",
    "MapOperator",
    "MergeOperator",
    "OutputDisplay",
    "TrimmomaticPreset",
    "UnsupportedStage",
]
