"""Domain exception hierarchy for the picoflow dispatcher."""

from __future__ import annotations


class PicoflowError(RuntimeError):
    """Base class for all dispatcher errors."""


class ContextRuleMissingError(PicoflowError):
    """Raised when a workflow builds a context before a rule was configured."""


class DispatchDepthError(PicoflowError):
    """Raised when nested publishing exceeds the configured depth bound."""


class SuspendedHandlerError(PicoflowError):
    """Raised when an async handler is dispatched without a running event loop."""


class ConfigValidationError(PicoflowError):
    """Raised when configuration cannot be validated safely."""
