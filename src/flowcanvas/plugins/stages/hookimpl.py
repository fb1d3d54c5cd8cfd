"""Hook implementation for built-in stage templates."""

from typing import Any

from flowcanvas.plugins.hookspecs import hookimpl


class FlowCanvasBuiltinStages:
    """Hook implementer for built-in stage templates."""

    @hookimpl
    def flowcanvas_get_stage_templates(self) -> list[type[Any]]:
        """Return built-in stage template classes."""
        from flowcanvas.plugins.stages.generic import GenericStage, UnsupportedStage
        from flowcanvas.plugins.stages.operators import (
            FilterOperator,
            MapOperator,
            MergeOperator,
        )
        from flowcanvas.plugins.stages.outputs import OutputDisplay
        from flowcanvas.plugins.stages.presets import FastQCPreset, TrimmomaticPreset

        return [
            FilterOperator,
            MapOperator,
            MergeOperator,
            GenericStage,
            FastQCPreset,
            TrimmomaticPreset,
            OutputDisplay,
            UnsupportedStage,
        ]


# Singleton instance for registration
builtin_stages = FlowCanvasBuiltinStages()
