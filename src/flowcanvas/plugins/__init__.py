"""Stage template plugin system.

Templates render one Nextflow process block per stage type and are
registered through pluggy hooks.
"""

from flowcanvas.plugins.base import RenderRequest, StageTemplate
from flowcanvas.plugins.hookspecs import hookimpl
from flowcanvas.plugins.manager import (
    StageTemplateManager,
    StageTemplateSpec,
    default_template_manager,
)
from flowcanvas.plugins.templates import ProcessTemplate

__all__ = [
    "ProcessTemplate",
    "RenderRequest",
    "StageTemplate",
    "StageTemplateManager",
    "StageTemplateSpec",
    "default_template_manager",
    "hookimpl",
]
