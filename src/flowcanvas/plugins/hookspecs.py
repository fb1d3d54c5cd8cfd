# src/flowcanvas/plugins/hookspecs.py
"""pluggy hook specifications for FlowCanvas stage templates.

Plugins implement these hooks to register stage templates with the compiler.
The template manager calls these hooks during discovery.

Usage (implementing a plugin):
    from flowcanvas.plugins.hookspecs import hookimpl

    class MyPlugin:
        @hookimpl  # NOT @hookspec - that's for defining specs
        def flowcanvas_get_stage_templates(self):
            return [MyStageTemplate]

Note: @hookspec defines the hook interface (done here).
      @hookimpl marks plugin implementations of those hooks.
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from flowcanvas.plugins.base import StageTemplate

# Project name for pluggy
PROJECT_NAME = "flowcanvas"

# Hook specification marker
hookspec = pluggy.HookspecMarker(PROJECT_NAME)

# Hook implementation marker (for plugins to use)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class FlowCanvasStageSpec:
    """Hook specifications for stage template plugins."""

    @hookspec
    def flowcanvas_get_stage_templates(self) -> list[type["StageTemplate"]]:  # type: ignore[empty-body]
        """Return stage template classes.

        Returns:
            List of StageTemplate subclasses (not instances), each handling
            the parameter type named by its ``name`` attribute
        """
