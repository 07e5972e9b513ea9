"""Top-level package for picoflow, a call-stack driven task dispatcher."""

from __future__ import annotations

from .bus import DEFAULT_MAX_DEPTH, Message, MessageBus
from .exceptions import (
    ConfigValidationError,
    ContextRuleMissingError,
    DispatchDepthError,
    PicoflowError,
    SuspendedHandlerError,
)
from .workflow import TaskCall, Workflow

__version__ = "0.1.0"

__all__ = [
    "ConfigValidationError",
    "ContextRuleMissingError",
    "DEFAULT_MAX_DEPTH",
    "DispatchDepthError",
    "Message",
    "MessageBus",
    "PicoflowError",
    "SuspendedHandlerError",
    "TaskCall",
    "Workflow",
    "__version__",
]
