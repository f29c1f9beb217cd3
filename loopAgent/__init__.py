"""Top-level package exports for loopAgent."""

from .agents import AgentRegistry, AgentTemplate
from .control import ControlRequest, ControlResponse, Suspendable, request_confirmation, request_input
from .delegation import DelegationFrame, DelegationMode, Delegator, SpawnPolicy
from .loop import RunResult, RunState, StepAgent
from .orchestration import AgentTask, OrchestratorResult, ParallelOrchestrator

__all__ = [
    "AgentRegistry",
    "AgentTask",
    "AgentTemplate",
    "ControlRequest",
    "ControlResponse",
    "DelegationFrame",
    "DelegationMode",
    "Delegator",
    "OrchestratorResult",
    "ParallelOrchestrator",
    "RunResult",
    "RunState",
    "SpawnPolicy",
    "StepAgent",
    "Suspendable",
    "request_confirmation",
    "request_input",
]
