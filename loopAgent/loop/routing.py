"""Continue/terminate decision made after every step."""

from __future__ import annotations

import logging
from typing import Literal

from loopAgent.loop.state import Step
from loopAgent.utils.logging_utils import log_routing_decision

LOGGER = logging.getLogger(__name__)

Decision = Literal["continue", "final_answer", "max_steps_reached"]


def step_route(agent_name: str, step: Step, max_steps: int) -> Decision:
    """Route after a step has been appended.

    Returns:
        "final_answer": The step produced the final answer
        "max_steps_reached": Budget exhausted without a final answer
        "continue": Run another step
    """
    if step.is_final_answer:
        decision = "final_answer"
        reason = "Step produced the final answer"
    elif step.step_number >= max_steps:
        decision = "max_steps_reached"
        reason = f"Step limit reached ({step.step_number}/{max_steps})"
    else:
        decision = "continue"
        reason = f"{max_steps - step.step_number} step(s) left"
        if step.error:
            reason = f"{reason}; last action failed, feeding the error back"

    log_routing_decision(LOGGER, agent_name, decision, reason, step.step_number)
    return decision
