"""Spawning sub-agents and bubbling their control requests.

Two ways to run a child:

- sync: the child runs to completion; every request it raises is answered
  with the sync-mode default. The parent never pauses.
- cooperative: the child runs as a nested Suspendable driven by the parent.
  Each request it raises is wrapped in a SubAgentQuery and handed to the
  parent's own ``suspend``, so it climbs one frame per level until it reaches
  the top-level caller. The answer is unwrapped and fed back to the child
  under the child's original request id.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Optional

from loopAgent.config.settings import get_settings
from loopAgent.control.requests import ControlRequest, ControlResponse, SubAgentQuery
from loopAgent.control.suspension import ensure_context, in_driven_context, suspend
from loopAgent.delegation.frame import DelegationFrame, SpawnPolicy
from loopAgent.loop.state import RunResult, current_run_context
from loopAgent.utils.logging_utils import log_spawn

if TYPE_CHECKING:
    from loopAgent.agents.schema import AgentTemplate
    from loopAgent.loop.agent import StepAgent

LOGGER = logging.getLogger(__name__)


class DelegationMode(str, Enum):
    SYNC = "sync"
    COOPERATIVE = "cooperative"
    AUTO = "auto"  # cooperative when the caller can suspend, sync otherwise


def wrap_request(request: ControlRequest, frame: DelegationFrame) -> SubAgentQuery:
    """Wrap a child's request for the frame above it."""
    return SubAgentQuery(
        agent_name=frame.agent_name,
        query=request.describe(),
        original=request,
        depth=frame.depth,
        options=getattr(request, "options", ()),
    )


def unwrap_response(answer: ControlResponse, original: ControlRequest) -> ControlResponse:
    """Re-address an answer to a wrapper so it answers the child's original request."""
    return ControlResponse(request_id=original.id, value=answer.value, approved=answer.approved)


class Delegator:
    """Spawns sub-agents from templates under a SpawnPolicy."""

    def __init__(self, policy: Optional[SpawnPolicy] = None):
        self.policy = policy

    def child_frame(
        self,
        template: "AgentTemplate",
        max_steps: Optional[int] = None,
        tools: Optional[Iterable[str]] = None,
    ) -> DelegationFrame:
        """Frame for a child of whatever agent is currently executing.

        Outside a running loop the caller itself is treated as a root frame.
        """
        context = current_run_context()
        requested_steps = max_steps or template.max_steps
        if context is not None and context.frame is not None:
            parent = context.frame
            remaining = context.remaining_steps
        else:
            policy = self.policy or SpawnPolicy.from_settings(get_settings().governance)
            parent = DelegationFrame.root("caller", max_steps=requested_steps or policy.max_steps_per_agent, policy=policy)
            remaining = None
        return parent.descend(
            template.name,
            requested_steps=requested_steps,
            requested_tools=tools,
            remaining_steps=remaining,
        )

    async def spawn(
        self,
        template: "AgentTemplate",
        task: str,
        mode: DelegationMode = DelegationMode.AUTO,
        max_steps: Optional[int] = None,
        tools: Optional[Iterable[str]] = None,
    ) -> RunResult:
        """Run ``task`` on a fresh instance of ``template`` one frame below the caller.

        Raises:
            SpawnError: Depth limit reached (fatal for the calling loop)
        """
        frame = self.child_frame(template, max_steps=max_steps, tools=tools)
        if mode is DelegationMode.AUTO:
            mode = DelegationMode.COOPERATIVE if in_driven_context() else DelegationMode.SYNC

        parent_name = frame.parent_name or "caller"
        log_spawn(LOGGER, parent_name, frame.agent_name, frame.depth, frame.max_steps, mode.value)

        agent = template.instantiate(frame=frame)
        if mode is DelegationMode.SYNC:
            return await agent.arun(task)
        return await self._run_cooperative(agent, task, frame)

    async def _run_cooperative(self, agent: "StepAgent", task: str, frame: DelegationFrame) -> RunResult:
        ensure_context()
        child = agent.run_suspendable(task)
        outcome = await child.start()
        while not child.done:
            original = outcome
            try:
                answer = await suspend(wrap_request(original, frame))
            except BaseException:
                await child.cancel()
                raise
            outcome = await child.resume(unwrap_response(answer, original))
        return outcome
