"""Delegation frames and the spawn policy that bounds them.

Each running agent owns a DelegationFrame. Spawning a sub-agent derives a
child frame one level deeper, with a step budget and tool set no larger than
the policy and the parent allow.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional, Tuple

from loopAgent.utils.error_handler import SpawnError, ToolExecutionError


@dataclass(frozen=True)
class SpawnPolicy:
    """Limits applied to every spawn.

    - max_depth: frames at this depth cannot spawn (root is depth 0)
    - max_steps_per_agent: ceiling on any child's step budget
    - inherit_restrictions: children only get tools their parent may use
    - allowed_tools: tools any spawned agent may use at all (None = no limit)
    """

    max_depth: int = 2
    max_steps_per_agent: int = 10
    inherit_restrictions: bool = True
    allowed_tools: Optional[FrozenSet[str]] = None

    def __post_init__(self) -> None:
        if self.allowed_tools is not None:
            object.__setattr__(self, "allowed_tools", frozenset(self.allowed_tools))

    @classmethod
    def from_settings(cls, governance) -> "SpawnPolicy":
        return cls(
            max_depth=governance.max_delegation_depth,
            max_steps_per_agent=governance.max_steps_per_agent,
            inherit_restrictions=governance.inherit_restrictions,
        )

    @classmethod
    def restrictive(cls) -> "SpawnPolicy":
        return cls(max_depth=1, max_steps_per_agent=5)


@dataclass(frozen=True)
class DelegationFrame:
    """Position of one agent in the spawn tree."""

    agent_name: str
    max_steps: int
    depth: int = 0
    allowed_tools: Optional[FrozenSet[str]] = None
    path: Tuple[str, ...] = ()
    policy: SpawnPolicy = field(default_factory=SpawnPolicy)

    def __post_init__(self) -> None:
        if self.allowed_tools is not None:
            object.__setattr__(self, "allowed_tools", frozenset(self.allowed_tools))
        if not self.path:
            object.__setattr__(self, "path", (self.agent_name,))

    @classmethod
    def root(
        cls,
        agent_name: str,
        max_steps: int,
        allowed_tools: Optional[Iterable[str]] = None,
        policy: Optional[SpawnPolicy] = None,
    ) -> "DelegationFrame":
        return cls(
            agent_name=agent_name,
            max_steps=max_steps,
            depth=0,
            allowed_tools=frozenset(allowed_tools) if allowed_tools is not None else None,
            policy=policy or SpawnPolicy(),
        )

    @property
    def is_root(self) -> bool:
        return self.depth == 0

    @property
    def parent_name(self) -> Optional[str]:
        return self.path[-2] if len(self.path) > 1 else None

    @property
    def can_spawn(self) -> bool:
        return self.depth < self.policy.max_depth

    def permits(self, tool_name: str) -> bool:
        return self.allowed_tools is None or tool_name in self.allowed_tools

    def descend(
        self,
        agent_name: str,
        requested_steps: Optional[int] = None,
        requested_tools: Optional[Iterable[str]] = None,
        remaining_steps: Optional[int] = None,
    ) -> "DelegationFrame":
        """Derive the frame of a sub-agent spawned from this one.

        Raises:
            SpawnError: This frame is already at the policy's max depth (fatal)
            ToolExecutionError: The parent has no steps left to hand down
        """
        if not self.can_spawn:
            raise SpawnError(
                f"Cannot spawn '{agent_name}' from '{self.agent_name}': depth {self.depth + 1} "
                f"exceeds max delegation depth {self.policy.max_depth}",
                reason="max_depth",
            )

        budgets = [self.policy.max_steps_per_agent]
        if requested_steps is not None:
            budgets.append(requested_steps)
        if remaining_steps is not None:
            budgets.append(remaining_steps)
        max_steps = min(budgets)
        if max_steps < 1:
            raise ToolExecutionError(
                f"'{self.agent_name}' has no steps left to delegate to '{agent_name}'",
                user_message="No steps left to delegate; answer with what you have",
            )

        return DelegationFrame(
            agent_name=agent_name,
            max_steps=max_steps,
            depth=self.depth + 1,
            allowed_tools=self._child_tools(requested_tools),
            path=self.path + (agent_name,),
            policy=self.policy,
        )

    def _child_tools(self, requested: Optional[Iterable[str]]) -> Optional[FrozenSet[str]]:
        tools = frozenset(requested) if requested is not None else None
        if self.policy.inherit_restrictions and self.allowed_tools is not None:
            tools = self.allowed_tools if tools is None else tools & self.allowed_tools
        if self.policy.allowed_tools is not None:
            tools = self.policy.allowed_tools if tools is None else tools & self.policy.allowed_tools
        return tools
