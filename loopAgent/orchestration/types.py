"""Messages crossing the isolation boundary of the parallel orchestrator.

Everything here is deep-frozen at construction: a unit receives an AgentTask
and hands back a UnitSuccess or UnitFailure, and neither side can mutate
what the other sees.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple, Union

from loopAgent.loop.state import TokenUsage
from loopAgent.utils.immutable import deep_freeze


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class AgentTask:
    """One unit of work for the orchestrator.

    Attributes:
        agent_name: Registered template to run
        prompt: Task given to the agent (rendered with str() when not text)
        config: Per-task overrides; ``max_steps`` is honored
        timeout: Seconds before the unit is reported as failed (None = settings default)
        task_id: Unique id of this task
        trace_id: Correlates tasks of one logical request
    """

    agent_name: str
    prompt: Any
    config: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    timeout: Optional[float] = None
    task_id: str = field(default_factory=_new_id)
    trace_id: str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        object.__setattr__(self, "prompt", deep_freeze(self.prompt))
        object.__setattr__(self, "config", deep_freeze(dict(self.config)))

    @property
    def prompt_text(self) -> str:
        return self.prompt if isinstance(self.prompt, str) else str(self.prompt)


@dataclass(frozen=True)
class UnitSuccess:
    task_id: str
    agent_name: str
    output: Any
    steps_taken: int
    token_usage: TokenUsage
    duration: float
    trace_id: str

    success = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "output", deep_freeze(self.output))


@dataclass(frozen=True)
class UnitFailure:
    task_id: str
    agent_name: str
    error_kind: str
    error_message: str
    steps_taken: int
    duration: float
    trace_id: str

    success = False


UnitResult = Union[UnitSuccess, UnitFailure]


@dataclass(frozen=True)
class OrchestratorResult:
    """Outcome of one parallel batch. Both partitions keep input order."""

    succeeded: Tuple[UnitSuccess, ...]
    failed: Tuple[UnitFailure, ...]
    duration: float

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def total_count(self) -> int:
        return self.success_count + self.failure_count

    @property
    def all_success(self) -> bool:
        return not self.failed

    @property
    def any_success(self) -> bool:
        return bool(self.succeeded)

    @property
    def total_token_usage(self) -> TokenUsage:
        usage = TokenUsage.zero()
        for result in self.succeeded:
            usage = usage + result.token_usage
        return usage

    @property
    def total_tokens(self) -> int:
        return self.total_token_usage.total_tokens

    @property
    def total_steps(self) -> int:
        return sum(r.steps_taken for r in self.succeeded) + sum(r.steps_taken for r in self.failed)

    @property
    def outputs(self) -> Tuple[Any, ...]:
        return tuple(r.output for r in self.succeeded)

    @property
    def errors(self) -> Tuple[str, ...]:
        return tuple(f"{r.error_kind}: {r.error_message}" for r in self.failed)
