"""Shared utilities: logging, error taxonomy, deep immutability."""

from .error_handler import (
    ExecutorError,
    FatalLoopError,
    LoopAgentError,
    ModelInvocationError,
    ProtocolViolationError,
    SpawnError,
    SuspensionContextError,
    ToolExecutionError,
)
from .immutable import deep_freeze, thaw

__all__ = [
    "ExecutorError",
    "FatalLoopError",
    "LoopAgentError",
    "ModelInvocationError",
    "ProtocolViolationError",
    "SpawnError",
    "SuspensionContextError",
    "ToolExecutionError",
    "deep_freeze",
    "thaw",
]
