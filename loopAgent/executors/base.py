"""Executor interface consumed by the step loop."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Optional, Protocol, Tuple, Union, runtime_checkable

from loopAgent.loop.state import Action, CallResult
from loopAgent.utils.immutable import deep_freeze


@dataclass(frozen=True)
class ExecutionOutcome:
    """What running one action produced.

    ``error`` set means the action failed in a recoverable way; the loop
    records it and lets the model react. Executors raise only for failures of
    their own.
    """

    output: Any = None
    logs: str = ""
    error: Optional[str] = None
    is_final_answer: bool = False
    call_results: Tuple[CallResult, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "output", deep_freeze(self.output))

    @property
    def observation(self) -> str:
        parts = []
        if self.logs:
            parts.append(f"Execution logs:\n{self.logs}")
        if self.output is not None and self.output != "":
            parts.append(str(self.output))
        return "\n".join(parts)


@runtime_checkable
class Executor(Protocol):
    def execute(
        self, action: Action, timeout: Optional[float] = None
    ) -> Union[ExecutionOutcome, Awaitable[ExecutionOutcome]]:
        ...
