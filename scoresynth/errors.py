from __future__ import annotations


class ScoreSynthError(Exception):
    """Base error for the scoresynth library."""


class InvalidConfigError(ScoreSynthError, ValueError):
    """Raised when a generator, envelope or direction cannot be configured."""


class InvalidArgumentError(ScoreSynthError, ValueError):
    """Raised when a search tree operation receives a missing key or bad bound."""


class ElementNotFoundError(ScoreSynthError, LookupError):
    """Raised when a search tree lookup or removal misses."""


class EmptyTreeError(ElementNotFoundError):
    """Raised when a lookup or removal is attempted on an empty search tree."""


class CapabilityError(ScoreSynthError, TypeError):
    """Raised when a strategy needs a waveform capability that is absent."""


class RenderTimeoutError(ScoreSynthError, TimeoutError):
    """Raised when a concurrent render does not finish inside its window."""
