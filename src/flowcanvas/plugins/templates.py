"""Jinja2-based process templating for stage definitions."""

from __future__ import annotations

import hashlib
import re
import shlex
from typing import Any

from jinja2 import StrictUndefined, TemplateSyntaxError, UndefinedError
from jinja2.exceptions import SecurityError
from jinja2.sandbox import SandboxedEnvironment

from flowcanvas.contracts.errors import TemplateError

_ERE_SPECIAL = re.compile(r"([\\.^$*+?()\[\]{}|])")
_BRE_SPECIAL = re.compile(r"([\\.^$*\[\]/])")


def groovy_single_quoted(value: Any) -> str:
    """Escape text for a Groovy '...' string literal."""
    return str(value).replace("\\", "\\\\").replace("'", "\\'")


def groovy_script_text(value: Any) -> str:
    """Escape text for a Groovy triple-double-quoted script block.

    Backslash, dollar and double quote are escaped so the text reaches the
    shell exactly as written.
    """
    return str(value).replace("\\", "\\\\").replace("$", "\\$").replace('"', '\\"')


def shell_quote(value: Any) -> str:
    return shlex.quote(str(value))


def ere_escape(value: Any) -> str:
    """Escape text so ``grep -E`` matches it literally."""
    return _ERE_SPECIAL.sub(r"\\\1", str(value))


def sed_pattern(value: Any) -> str:
    """Escape text for the pattern half of ``s/pattern/replacement/``."""
    return _BRE_SPECIAL.sub(r"\\\1", str(value))


def sed_replacement(value: Any) -> str:
    """Escape text for the replacement half of ``s/pattern/replacement/``."""
    return str(value).replace("\\", "\\\\").replace("/", "\\/").replace("&", "\\&")


def _sha256(content: str) -> str:
    """Compute SHA-256 hash of string content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def _build_environment() -> SandboxedEnvironment:
    env = SandboxedEnvironment(
        undefined=StrictUndefined,  # Raise on undefined variables
        autoescape=False,  # Output is Groovy, not HTML
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=False,
    )
    env.filters["gsq"] = groovy_single_quoted
    env.filters["gscript"] = groovy_script_text
    env.filters["shell_quote"] = shell_quote
    env.filters["ere_escape"] = ere_escape
    env.filters["sed_pattern"] = sed_pattern
    env.filters["sed_replacement"] = sed_replacement
    return env


class ProcessTemplate:
    """Jinja2 template for one Nextflow ``process`` block.

    Uses a sandboxed environment so template plugins cannot reach Python
    internals. Escaping filters available inside templates:

    - ``gsq``: Groovy single-quoted string content
    - ``gscript``: text inside a ``\"\"\"`` script block
    - ``shell_quote``: POSIX shell single quoting
    - ``ere_escape``: literal match for ``grep -E``
    - ``sed_pattern`` / ``sed_replacement``: literal ``sed s///`` halves

    Example:
        template = ProcessTemplate('''
            process {{ process_name }} {
                script:
                \"\"\"
                grep -F -e {{ text | shell_quote | gscript }} "${input_file}"
                \"\"\"
            }
        ''')
        text = template.render(process_name="filter_n1", text="PASS")
    """

    def __init__(self, template_string: str) -> None:
        """Initialize template.

        Raises:
            TemplateError: If template syntax is invalid
        """
        self._template_string = template_string
        self._template_hash = _sha256(template_string)
        self._env = _build_environment()

        try:
            self._template = self._env.from_string(template_string)
        except TemplateSyntaxError as e:
            raise TemplateError(f"Invalid template syntax: {e}") from e

    @property
    def template_hash(self) -> str:
        """SHA-256 hash of the template string."""
        return self._template_hash

    def render(self, **variables: Any) -> str:
        """Render template with variables.

        Raises:
            TemplateError: If rendering fails (undefined variable, sandbox violation, etc.)
        """
        try:
            return self._template.render(**variables)
        except UndefinedError as e:
            raise TemplateError(f"Undefined variable: {e}") from e
        except SecurityError as e:
            raise TemplateError(f"Sandbox violation: {e}") from e
        except Exception as e:
            raise TemplateError(f"Template rendering failed: {e}") from e
