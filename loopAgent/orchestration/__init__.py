"""Parallel execution of independent agent tasks in isolated units."""

from .parallel import ParallelOrchestrator
from .types import AgentTask, OrchestratorResult, UnitFailure, UnitResult, UnitSuccess

__all__ = [
    "AgentTask",
    "OrchestratorResult",
    "ParallelOrchestrator",
    "UnitFailure",
    "UnitResult",
    "UnitSuccess",
]
