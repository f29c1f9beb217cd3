"""Agent templates.

An AgentTemplate is the immutable recipe for an agent: model, tools, prompt,
budget and managed sub-agents. Every ``instantiate`` call builds a fresh
StepAgent with its own Memory, so templates can be shared freely between
delegations and parallel units. A template holding a ready-made ``model``
hands that one object to every instance; parallel units refuse such
templates and need a ``model_factory``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional, Sequence, Tuple

from langchain_core.tools import BaseTool

from loopAgent.delegation.frame import DelegationFrame
from loopAgent.delegation.spawner import DelegationMode, Delegator
from loopAgent.executors.base import Executor
from loopAgent.hitl.approval_checker import ApprovalChecker
from loopAgent.loop.agent import StepAgent, StepCallback
from loopAgent.models.chat_model import build_chat_model
from loopAgent.tools.builtin.delegate_task import ManagedAgentTool


@dataclass(frozen=True)
class AgentTemplate:
    """Recipe for building agents.

    Attributes:
        name: Unique agent name (also the tool name when managed by another agent)
        description: What the agent is good at (shown to managing agents)
        model: Model instance shared by all instances
        model_factory: Builds a fresh model per instance (required for parallel units)
        tools: Tools the agent may call
        system_prompt: System prompt (None = default)
        max_steps: Requested step budget (None = settings default)
        managed_agents: Templates this agent can delegate to
        delegation_mode: How managed agents are run
        executor_factory: Builds the executor from the agent's tools (None = ToolCallExecutor)
        approval_checker: Approval rules for tool calls
    """

    name: str
    description: str = ""
    model: Any = None
    model_factory: Optional[Callable[[], Any]] = None
    tools: Tuple[BaseTool, ...] = ()
    system_prompt: Optional[str] = None
    max_steps: Optional[int] = None
    managed_agents: Tuple["AgentTemplate", ...] = ()
    delegation_mode: DelegationMode = DelegationMode.AUTO
    executor_factory: Optional[Callable[[Sequence[BaseTool]], Executor]] = None
    approval_checker: Optional[ApprovalChecker] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tools", tuple(self.tools))
        object.__setattr__(self, "managed_agents", tuple(self.managed_agents))

    @property
    def shares_model(self) -> bool:
        return self.model_factory is None and self.model is not None

    def walk(self) -> Iterator["AgentTemplate"]:
        """This template and, depth first, every template it can delegate to."""
        yield self
        for managed in self.managed_agents:
            yield from managed.walk()

    def build_model(self) -> Any:
        if self.model_factory is not None:
            return self.model_factory()
        if self.model is not None:
            return self.model
        return build_chat_model()

    def instantiate(
        self,
        frame: Optional[DelegationFrame] = None,
        step_callbacks: Sequence[StepCallback] = (),
        delegator: Optional[Delegator] = None,
    ) -> StepAgent:
        """Build a fresh agent with empty memory."""
        delegator = delegator or Delegator()
        managed = [ManagedAgentTool.from_template(t, delegator=delegator) for t in self.managed_agents]

        agent = StepAgent(
            name=self.name,
            model=self.build_model(),
            tools=self.tools,
            system_prompt=self.system_prompt,
            max_steps=self.max_steps,
            frame=frame,
            delegated_tools=managed,
            approval_checker=self.approval_checker,
            step_callbacks=step_callbacks,
        )
        if self.executor_factory is not None:
            # Sees only the tools left after frame restrictions
            agent.executor = self.executor_factory(tuple(agent.tools))
        return agent
