"""Immutable records produced by the step loop."""

from __future__ import annotations

import re
from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, ClassVar, Mapping, Optional, Tuple, Union

from loopAgent.utils.immutable import deep_freeze

if TYPE_CHECKING:
    from loopAgent.delegation.frame import DelegationFrame


@dataclass(frozen=True)
class TokenUsage:
    """Token counts for one model call, or a sum of several."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    @classmethod
    def zero(cls) -> "TokenUsage":
        return cls()


def _normalize_text(value: Any) -> str:
    return re.sub(r"\s+", " ", str(value)).strip().lower()


@dataclass(frozen=True)
class ToolCall:
    name: str
    args: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    id: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", deep_freeze(dict(self.args)))

    def signature(self) -> str:
        """Name plus normalized arguments; equal signatures mean the same call."""
        parts = [f"{key}={_normalize_text(value)}" for key, value in sorted(self.args.items())]
        return f"{self.name}({', '.join(parts)})"


@dataclass(frozen=True)
class ToolCallAction:
    calls: Tuple[ToolCall, ...]

    kind: ClassVar[str] = "tool_call"

    def signature(self) -> str:
        return " | ".join(call.signature() for call in self.calls)

    @property
    def tool_names(self) -> Tuple[str, ...]:
        return tuple(call.name for call in self.calls)


@dataclass(frozen=True)
class CodeAction:
    code: str

    kind: ClassVar[str] = "code"

    def normalized(self) -> str:
        return re.sub(r"\s+", " ", self.code).strip()


@dataclass(frozen=True)
class FinalAnswerAction:
    answer: Any
    tool_call_id: Optional[str] = None

    kind: ClassVar[str] = "final_answer"

    def __post_init__(self) -> None:
        object.__setattr__(self, "answer", deep_freeze(self.answer))


Action = Union[ToolCallAction, CodeAction, FinalAnswerAction]


@dataclass(frozen=True)
class CallResult:
    """Outcome of one tool call inside a ToolCallAction."""

    tool_call_id: str
    name: str
    output: str = ""
    error: Optional[str] = None

    @property
    def content(self) -> str:
        return f"Error: {self.error}" if self.error else self.output


@dataclass(frozen=True)
class Step:
    """One reason-act-observe iteration. Never mutated after it is appended."""

    step_number: int
    action: Action
    observation: str = ""
    model_output: str = ""
    token_usage: TokenUsage = field(default_factory=TokenUsage)
    error: Optional[str] = None
    is_final_answer: bool = False
    call_results: Tuple[CallResult, ...] = ()
    injected_guidance: Tuple[str, ...] = ()
    duration: float = 0.0


class RunState(str, Enum):
    SUCCESS = "success"
    MAX_STEPS_REACHED = "max_steps_reached"


@dataclass(frozen=True)
class GuardReport:
    """A guard detector firing after a given step."""

    step_number: int
    guard: str
    details: Mapping[str, Any]
    guidance: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "details", deep_freeze(dict(self.details)))


@dataclass(frozen=True)
class RunResult:
    """Terminal outcome of one agent run."""

    output: Any
    state: RunState
    steps: Tuple[Step, ...]
    token_usage: TokenUsage
    duration: float
    agent_name: str = ""
    detections: Tuple[GuardReport, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "output", deep_freeze(self.output))

    @property
    def success(self) -> bool:
        return self.state is RunState.SUCCESS

    @property
    def steps_taken(self) -> int:
        return len(self.steps)


@dataclass(frozen=True)
class RunContext:
    """Budget information visible to the action currently executing."""

    agent_name: str
    step_number: int
    max_steps: int
    frame: Optional["DelegationFrame"] = None

    @property
    def remaining_steps(self) -> int:
        return max(self.max_steps - self.step_number, 0)


_run_context: ContextVar[Optional[RunContext]] = ContextVar("loopagent_run_context", default=None)


def current_run_context() -> Optional[RunContext]:
    """RunContext of the step whose action is executing, or None outside a loop."""
    return _run_context.get()
