"""Executors run the actions proposed by the model."""

from .base import ExecutionOutcome, Executor
from .tool_executor import ToolCallExecutor

__all__ = ["ExecutionOutcome", "Executor", "ToolCallExecutor"]
