from __future__ import annotations


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class BrowserError(RuntimeError):
    """Raised when the browser cannot be launched or a page cannot be loaded."""


class ReconciliationFailure(RuntimeError):
    """Raised when no captured payload normalizes into a usable profile."""


class CaptureError(Exception):
    """
    Base class for non-fatal pipeline errors.

    These are recorded into Diagnostics at the point they occur and never abort a run.
    """


class ParseError(CaptureError):
    """A payload or embedded script span is not valid JSON."""


class ChannelTimeout(CaptureError):
    """No matching response arrived within a bounded wait."""


class ChannelError(CaptureError):
    """A capture attempt failed for a reason other than parsing."""


class NormalizationMiss(CaptureError):
    """A payload has no locatable user structure."""


class PostDetailError(CaptureError):
    """Navigation, evaluation or parsing failed while augmenting one post."""
