"""Fatal error types raised by the crossrefware tools."""
from __future__ import annotations


class CrossrefwareError(Exception):
    """Base class for errors that abort a run."""


class ConfigurationError(CrossrefwareError):
    """Unreadable configuration, invalid setting or missing credentials."""


class InputError(CrossrefwareError):
    """Missing input or side-file, or structurally invalid input data."""


class MarkupError(CrossrefwareError):
    """Markup that the Crossref schema rejects survived title sanitization."""


__all__ = ["CrossrefwareError", "ConfigurationError", "InputError", "MarkupError"]
