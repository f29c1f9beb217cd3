"""Control-message taxonomy.

A running computation that needs something from outside (an answer from a
human, approval of an action, or help from the agent that delegated to it)
emits a ControlRequest and waits for the ControlResponse carrying the same id.

Three variants:
- UserInput: ask the user a question (optionally with options and a default)
- Confirmation: ask to approve an action before it runs
- SubAgentQuery: a request raised inside a delegated sub-agent, wrapped once
  per delegation frame on its way up

Every variant also carries a SyncBehavior: what happens when the request is
raised with nobody able to answer it (sync mode).
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, ClassVar, Mapping, Optional, Tuple, Union

from loopAgent.config.settings import get_settings
from loopAgent.utils.error_handler import ProtocolViolationError
from loopAgent.utils.immutable import deep_freeze


class SyncBehavior(str, Enum):
    """How a request resolves when no one can answer it."""
    DEFAULT = "default"  # respond with the request's default value
    APPROVE = "approve"  # approve the action
    DENY = "deny"  # deny the action


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True, kw_only=True)
class ControlRequest:
    """Base of all control requests. Immutable once created."""

    id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=time.time)

    kind: ClassVar[str] = "control_request"

    @property
    def sync_behavior(self) -> SyncBehavior:
        raise NotImplementedError

    def describe(self) -> str:
        """Human-readable one-line rendering of the request."""
        raise NotImplementedError

    def to_payload(self) -> dict:
        """Plain-dict rendering for a UI or transport layer."""
        return {"type": self.kind, "id": self.id, "question": self.describe()}


@dataclass(frozen=True, kw_only=True)
class UserInput(ControlRequest):
    """Ask the user a question."""

    prompt: str
    options: Tuple[Any, ...] = ()
    default_value: Any = None
    timeout: Optional[float] = None
    context: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    kind: ClassVar[str] = "user_input"

    def __post_init__(self) -> None:
        object.__setattr__(self, "options", deep_freeze(tuple(self.options)))
        object.__setattr__(self, "context", deep_freeze(dict(self.context)))
        object.__setattr__(self, "default_value", deep_freeze(self.default_value))

    @property
    def sync_behavior(self) -> SyncBehavior:
        return SyncBehavior.DEFAULT

    def describe(self) -> str:
        if self.options:
            return f"{self.prompt} (options: {', '.join(str(o) for o in self.options)})"
        return self.prompt

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload.update(
            {
                "options": list(self.options),
                "default": self.default_value,
                "timeout": self.timeout,
                "context": dict(self.context),
            }
        )
        return payload


@dataclass(frozen=True, kw_only=True)
class Confirmation(ControlRequest):
    """Ask for approval before an action runs."""

    action: str
    description: str = ""
    consequences: Tuple[str, ...] = ()
    reversible: bool = True
    risk_level: str = "low"

    kind: ClassVar[str] = "confirmation"

    def __post_init__(self) -> None:
        object.__setattr__(self, "consequences", tuple(str(c) for c in self.consequences))

    @property
    def sync_behavior(self) -> SyncBehavior:
        return SyncBehavior.APPROVE if self.reversible else SyncBehavior.DENY

    def describe(self) -> str:
        text = f"Approve '{self.action}'?"
        if self.description:
            text = f"{text} {self.description}"
        if not self.reversible:
            text = f"{text} [irreversible]"
        return text

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload.update(
            {
                "action": self.action,
                "description": self.description,
                "consequences": list(self.consequences),
                "reversible": self.reversible,
                "risk_level": self.risk_level,
            }
        )
        return payload


@dataclass(frozen=True, kw_only=True)
class SubAgentQuery(ControlRequest):
    """A request raised inside a delegated sub-agent, wrapped by its parent frame.

    ``original`` is the request as seen by the child (itself possibly a
    SubAgentQuery when the child delegated further). A request raised at
    depth D reaches the top as D nested wrappers.
    """

    agent_name: str
    query: str
    original: ControlRequest
    depth: int = 1
    options: Tuple[Any, ...] = ()

    kind: ClassVar[str] = "sub_agent_query"

    def __post_init__(self) -> None:
        object.__setattr__(self, "options", deep_freeze(tuple(self.options)))

    @property
    def original_id(self) -> str:
        return self.original.id

    @property
    def sync_behavior(self) -> SyncBehavior:
        return self.innermost().sync_behavior

    def chain(self) -> Tuple["SubAgentQuery", ...]:
        """Wrapper layers from outermost (self) to innermost."""
        layers = [self]
        current = self.original
        while isinstance(current, SubAgentQuery):
            layers.append(current)
            current = current.original
        return tuple(layers)

    def innermost(self) -> ControlRequest:
        """The request as originally raised, with every wrapper removed."""
        return self.chain()[-1].original

    @property
    def agent_path(self) -> Tuple[str, ...]:
        return tuple(layer.agent_name for layer in self.chain())

    def describe(self) -> str:
        return f"[{self.agent_name}] {self.query}"

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload.update(
            {
                "agent_name": self.agent_name,
                "depth": self.depth,
                "options": list(self.options),
                "context": {"original": self.original.to_payload(), "original_id": self.original_id},
            }
        )
        return payload


RequestOrId = Union[ControlRequest, str]


def _request_id(target: RequestOrId) -> str:
    return target.id if isinstance(target, ControlRequest) else str(target)


@dataclass(frozen=True)
class ControlResponse:
    """Answer to exactly one ControlRequest, matched by ``request_id``."""

    request_id: str
    value: Any = None
    approved: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", deep_freeze(self.value))

    @classmethod
    def respond(cls, target: RequestOrId, value: Any) -> "ControlResponse":
        return cls(request_id=_request_id(target), value=value, approved=True)

    @classmethod
    def approve(cls, target: RequestOrId, value: Any = None) -> "ControlResponse":
        return cls(request_id=_request_id(target), value=value, approved=True)

    @classmethod
    def deny(cls, target: RequestOrId, reason: Optional[str] = None) -> "ControlResponse":
        return cls(request_id=_request_id(target), value=reason, approved=False)

    def answers(self, request: ControlRequest) -> bool:
        return self.request_id == request.id


def sync_response(request: ControlRequest) -> ControlResponse:
    """Answer ``request`` the way sync mode does when nobody is asked.

    UserInput gets its default value. Reversible confirmations are approved
    (unless AUTO_APPROVE_REVERSIBLE is off), irreversible ones denied.
    SubAgentQuery resolves through its innermost request.
    """
    if isinstance(request, SubAgentQuery):
        inner = sync_response(request.innermost())
        return ControlResponse(request_id=request.id, value=inner.value, approved=inner.approved)
    if isinstance(request, UserInput):
        return ControlResponse.respond(request, request.default_value)
    if isinstance(request, Confirmation):
        if request.sync_behavior is SyncBehavior.APPROVE and get_settings().governance.auto_approve_reversible:
            return ControlResponse.approve(request)
        return ControlResponse.deny(request, "No approver available in sync mode")
    raise ProtocolViolationError(f"Unknown control request variant: {type(request).__name__}")
