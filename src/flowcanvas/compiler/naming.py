"""Identifier and file name rules for generated scripts."""

import re

from flowcanvas.contracts.compile import CompileOptions

_SEPARATORS = re.compile(r"[\s-]+")
_NON_IDENTIFIER = re.compile(r"[^A-Za-z0-9_]")
_NON_FILENAME = re.compile(r"[^A-Za-z0-9_.\-]")

# Groovy keywords that cannot name a process input
_RESERVED = frozenset(
    {
        "as", "assert", "break", "case", "catch", "class", "const", "continue",
        "def", "default", "do", "else", "enum", "extends", "false", "finally",
        "for", "goto", "if", "implements", "import", "in", "instanceof",
        "interface", "new", "null", "package", "return", "super", "switch",
        "this", "throw", "throws", "true", "try", "while",
    }
)


def sanitize_identifier(raw: str) -> str:
    """Turn arbitrary text into a script identifier.

    Runs of whitespace and hyphens become one underscore, any other
    character outside ``[A-Za-z0-9_]`` becomes an underscore, and a leading
    digit gets a ``v_`` prefix.
    """
    name = _NON_IDENTIFIER.sub("_", _SEPARATORS.sub("_", raw))
    if not name:
        return "v_"
    if name[0].isdigit():
        return f"v_{name}"
    return name


def value_identifier(port: str) -> str:
    """Identifier for a ``val`` input bound to ``port``."""
    name = sanitize_identifier(port)
    return f"input_{name}" if name in _RESERVED else name


def safe_file_name(raw: str) -> str:
    return _NON_FILENAME.sub("_", _SEPARATORS.sub("_", raw))


def resolve_output_name(
    options: CompileOptions,
    *,
    process_name: str,
    counter: int,
    label: str,
    extension: str,
) -> str:
    """Result file name for an output sink.

    The naming pattern supports ``{workflow_name}``, ``{timestamp}``,
    ``{date}`` and ``{process_name}``; a two-digit counter and the sink
    label are appended.
    """
    pattern = options.naming_pattern or "{workflow_name}_{timestamp}_{process_name}"
    base = (
        pattern.replace("{workflow_name}", options.run_name)
        .replace("{timestamp}", options.timestamp)
        .replace("{date}", options.date)
        .replace("{process_name}", process_name)
    )
    return safe_file_name(f"{base}_{counter:02d}_{label}.{extension or 'txt'}")


class NameAllocator:
    """Hands out unique names, suffixing ``_2``, ``_3`` on collision."""

    def __init__(self) -> None:
        self._taken: set[str] = set()

    def allocate(self, base: str) -> str:
        name = base
        suffix = 2
        while name in self._taken:
            name = f"{base}_{suffix}"
            suffix += 1
        self._taken.add(name)
        return name

    def __contains__(self, name: object) -> bool:
        return name in self._taken
