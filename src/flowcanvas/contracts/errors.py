"""Exceptions that cross subsystem boundaries."""


class GraphDocumentError(Exception):
    """Raised when a graph document is structurally unusable.

    Malformed *content* (dangling edges, missing parameters) is never an
    exception; it degrades to compile diagnostics. This is only for input
    that cannot be read as a graph at all.
    """


class TemplateError(Exception):
    """Error in stage template rendering (including sandbox violations)."""


class UnknownStageTemplateError(KeyError):
    """No stage template is registered for a parameter type."""
