"""Delegate a subtask to a managed sub-agent.

The parent model sees each managed agent as a tool taking one ``task``
argument. Calling it spawns a fresh child agent through the Delegator; any
question the child asks bubbles up through the parent (cooperative mode) or
is answered with defaults (sync mode).
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Optional, Type

from langchain_core.callbacks import AsyncCallbackManagerForToolRun, CallbackManagerForToolRun
from langchain_core.tools import BaseTool
from pydantic import BaseModel, ConfigDict, Field

from loopAgent.delegation.spawner import DelegationMode, Delegator
from loopAgent.loop.prompts import (
    MANAGED_AGENT_FAILURE_TEMPLATE,
    MANAGED_AGENT_REPORT_TEMPLATE,
    MANAGED_AGENT_TASK_TEMPLATE,
)

if TYPE_CHECKING:
    from loopAgent.agents.schema import AgentTemplate


class DelegateTaskInput(BaseModel):
    task: str = Field(
        ...,
        description="Self-contained description of the subtask: the goal, the context it needs, "
        "and the format you want the answer in",
    )


class ManagedAgentTool(BaseTool):
    """A sub-agent exposed as a tool."""

    name: str
    description: str
    args_schema: Type[BaseModel] = DelegateTaskInput
    template: Any = Field(exclude=True)
    delegator: Delegator = Field(default_factory=Delegator, exclude=True)
    mode: DelegationMode = DelegationMode.AUTO

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @classmethod
    def from_template(
        cls,
        template: "AgentTemplate",
        delegator: Optional[Delegator] = None,
        mode: Optional[DelegationMode] = None,
    ) -> "ManagedAgentTool":
        description = (
            f"{template.description}\n"
            f"Delegates to the managed agent '{template.name}'. "
            "Give it a complete, self-contained task; it cannot see your conversation."
        )
        return cls(
            name=template.name,
            description=description,
            template=template,
            delegator=delegator or Delegator(),
            mode=mode or template.delegation_mode,
        )

    def _run(self, task: str, run_manager: Optional[CallbackManagerForToolRun] = None) -> str:
        return asyncio.run(self._arun(task))

    async def _arun(self, task: str, run_manager: Optional[AsyncCallbackManagerForToolRun] = None) -> str:
        child_task = MANAGED_AGENT_TASK_TEMPLATE.format(name=self.template.name, task=task)
        result = await self.delegator.spawn(self.template, child_task, mode=self.mode)
        if result.success:
            return MANAGED_AGENT_REPORT_TEMPLATE.format(name=self.template.name, output=result.output)
        return MANAGED_AGENT_FAILURE_TEMPLATE.format(
            name=self.template.name,
            state=result.state.value,
            steps=result.steps_taken,
            output=result.output,
        )
