"""Error taxonomy and error-message helpers for loopAgent."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Tuple

LOGGER = logging.getLogger(__name__)


class LoopAgentError(Exception):
    """Base exception for loopAgent errors."""

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        self.user_message = user_message or message


class ToolExecutionError(LoopAgentError):
    """Recoverable action failure; recorded on the step and fed back to the model."""


class FatalLoopError(LoopAgentError):
    """Terminates the loop immediately and propagates to the caller."""


class ProtocolViolationError(FatalLoopError):
    """Suspend/resume protocol broken (mismatched id, resume of a finished computation)."""


class SuspensionContextError(ProtocolViolationError):
    """suspend() called outside a driven computation."""


class ModelInvocationError(FatalLoopError):
    """Model call failed after its own retries."""


class ExecutorError(FatalLoopError):
    """The executor itself failed (as opposed to the action it ran)."""


class SpawnError(FatalLoopError):
    """Sub-agent spawn rejected by the delegation policy."""

    def __init__(self, message: str, reason: str = "policy", user_message: Optional[str] = None):
        super().__init__(message, user_message)
        self.reason = reason


def handle_model_error(error: Exception) -> str:
    """Convert model invocation errors to user-friendly messages.

    Args:
        error: Exception raised during model invocation

    Returns:
        User-friendly error message
    """
    error_str = str(error).lower()

    if "rate_limit" in error_str or "429" in error_str:
        return "Too many requests to the model, try again later"

    if "timeout" in error_str or isinstance(error, asyncio.TimeoutError):
        return "The model did not respond in time"

    if "context_length" in error_str or "maximum context" in error_str:
        return "Conversation is too long for the model's context window"

    if "invalid_api_key" in error_str or "authentication" in error_str:
        return "Model API key is invalid"

    if "quota" in error_str or "insufficient" in error_str:
        return "Model quota exhausted"

    return f"Model service unavailable: {error}"


def classify_error(error: BaseException) -> Tuple[str, str]:
    """Return (kind, message) describing an error crossing an isolation boundary."""
    if isinstance(error, asyncio.TimeoutError):
        return "TimeoutError", str(error) or "unit timed out"
    message = getattr(error, "user_message", None) or str(error) or error.__class__.__name__
    return error.__class__.__name__, message
