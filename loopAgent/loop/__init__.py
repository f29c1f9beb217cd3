"""The step loop: agent, memory, parsing, routing and run records."""

from .agent import StepAgent
from .memory import Memory
from .state import (
    CodeAction,
    FinalAnswerAction,
    RunContext,
    RunResult,
    RunState,
    Step,
    TokenUsage,
    ToolCall,
    ToolCallAction,
    current_run_context,
)

__all__ = [
    "CodeAction",
    "FinalAnswerAction",
    "Memory",
    "RunContext",
    "RunResult",
    "RunState",
    "Step",
    "StepAgent",
    "TokenUsage",
    "ToolCall",
    "ToolCallAction",
    "current_run_context",
]
