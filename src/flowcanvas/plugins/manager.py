# src/flowcanvas/plugins/manager.py
"""Stage template manager for discovery, registration, and lookup.

Uses pluggy for hook-based plugin registration.
"""

from dataclasses import dataclass
from typing import Any

import pluggy

from flowcanvas.contracts.errors import UnknownStageTemplateError
from flowcanvas.plugins.base import StageTemplate
from flowcanvas.plugins.hookspecs import PROJECT_NAME, FlowCanvasStageSpec


@dataclass(frozen=True)
class StageTemplateSpec:
    """Registration record for a stage template."""

    name: str
    version: str
    description: str
    template_hash: str

    @classmethod
    def from_template(cls, template: StageTemplate) -> "StageTemplateSpec":
        return cls(
            name=template.name,
            version=template.plugin_version,
            description=template.description,
            template_hash=template.template_hash,
        )


class StageTemplateManager:
    """Manages stage template discovery, registration, and lookup.

    Template classes are instantiated once on registration, which compiles
    their Jinja source; broken templates fail here rather than mid-compile.

    Usage:
        manager = StageTemplateManager()
        manager.register_builtin_plugins()

        template = manager.get_template("filter")
    """

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(FlowCanvasStageSpec)
        self._templates: dict[str, StageTemplate] = {}

    def register_builtin_plugins(self) -> None:
        """Register all built-in stage templates.

        Call this once at startup to make built-in templates discoverable.
        """
        from flowcanvas.plugins.stages.hookimpl import builtin_stages

        self.register(builtin_stages)

    def register(self, plugin: Any) -> None:
        """Register a plugin.

        Args:
            plugin: Plugin instance implementing hook methods
        """
        self._pm.register(plugin)
        self._refresh_caches()

    def _refresh_caches(self) -> None:
        """Refresh template cache from hooks.

        Raises:
            ValueError: If two templates claim the same parameter type
        """
        new_templates: dict[str, StageTemplate] = {}
        # pluggy calls the most recently registered implementation first
        for templates in reversed(self._pm.hook.flowcanvas_get_stage_templates()):
            for cls in templates:
                name = cls.name
                if name in new_templates:
                    raise ValueError(
                        f"Duplicate stage template name: '{name}'. "
                        f"Already registered by {type(new_templates[name]).__name__}"
                    )
                existing = self._templates.get(name)
                new_templates[name] = existing if type(existing) is cls else cls()

        self._templates = new_templates

    def get_templates(self) -> list[StageTemplate]:
        """Get all registered templates, in registration order."""
        return list(self._templates.values())

    def get_specs(self) -> list[StageTemplateSpec]:
        return [StageTemplateSpec.from_template(t) for t in self._templates.values()]

    def get_template(self, name: str) -> StageTemplate:
        """Get the template for a parameter type.

        Raises:
            UnknownStageTemplateError: If no template handles ``name``
        """
        try:
            return self._templates[name]
        except KeyError:
            raise UnknownStageTemplateError(name) from None

    def has_template(self, name: str) -> bool:
        return name in self._templates


def default_template_manager() -> StageTemplateManager:
    """A manager with every built-in template registered."""
    manager = StageTemplateManager()
    manager.register_builtin_plugins()
    return manager
