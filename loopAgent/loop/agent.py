"""The reason-act-observe step loop.

One StepAgent runs one task at a time:

    generate -> parse -> execute -> append step -> guards -> route -> repeat

until the model gives a final answer or the step budget runs out. Failed
actions are recorded on their step so the model can correct itself; only
infrastructure failures (model, executor, spawn depth, protocol) escape.

Three entry points reach the same terminal states:
- ``run(task)``: blocking, every control request gets its sync default
- ``await arun(task, handler)``: async, ``handler`` answers control requests
- ``run_suspendable(task)``: a Suspendable the caller drives step by step
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from langchain_core.tools import BaseTool

from loopAgent.config.settings import get_settings
from loopAgent.control.requests import sync_response
from loopAgent.control.suspension import ResponseHandler, Suspendable
from loopAgent.delegation.frame import DelegationFrame, SpawnPolicy
from loopAgent.executors.base import ExecutionOutcome, Executor
from loopAgent.executors.tool_executor import ToolCallExecutor
from loopAgent.guards.drift import DriftConfig, check_goal_drift
from loopAgent.guards.repetition import RepetitionConfig, check_repetition
from loopAgent.hitl.approval_checker import ApprovalChecker
from loopAgent.loop.memory import Memory
from loopAgent.loop.parsing import message_text, parse_action
from loopAgent.loop.prompts import DEFAULT_SYSTEM_PROMPT, GRACE_STEP_NOTICE
from loopAgent.loop.routing import step_route
from loopAgent.loop.state import (
    Action,
    FinalAnswerAction,
    GuardReport,
    RunContext,
    RunResult,
    RunState,
    Step,
    TokenUsage,
    _run_context,
)
from loopAgent.models.chat_model import ChatModelClient
from loopAgent.tools.builtin.final_answer import final_answer
from loopAgent.utils.error_handler import ExecutorError, FatalLoopError
from loopAgent.utils.logging_utils import log_guard_detection, log_step

LOGGER = logging.getLogger(__name__)

StepCallback = Callable[[Step], Any]


class StepAgent:
    """Runs the step loop for one agent.

    Args:
        name: Agent name (used in logs, frames and bubbled requests)
        model: Langchain chat model, or any object with ``ainvoke(messages)``
        tools: Tools the agent may call
        executor: Runs actions; defaults to a ToolCallExecutor over ``tools``
        system_prompt: System prompt (default: DEFAULT_SYSTEM_PROMPT)
        max_steps: Step budget (default: MAX_STEPS setting; capped by ``frame``)
        frame: Delegation frame; a root frame is created when omitted
        delegated_tools: Tools exempt from the frame's tool restrictions (sub-agents)
    """

    def __init__(
        self,
        name: str,
        model: Any,
        tools: Iterable[BaseTool] = (),
        executor: Optional[Executor] = None,
        system_prompt: Optional[str] = None,
        max_steps: Optional[int] = None,
        frame: Optional[DelegationFrame] = None,
        delegated_tools: Iterable[BaseTool] = (),
        approval_checker: Optional[ApprovalChecker] = None,
        repetition_config: Optional[RepetitionConfig] = None,
        drift_config: Optional[DriftConfig] = None,
        action_timeout: Optional[float] = None,
        step_callbacks: Sequence[StepCallback] = (),
    ):
        settings = get_settings()
        self.name = name

        if frame is None:
            frame = DelegationFrame.root(
                name,
                max_steps=max_steps or settings.governance.max_steps,
                policy=SpawnPolicy.from_settings(settings.governance),
            )
        self.frame = frame
        self.max_steps = min(max_steps, frame.max_steps) if max_steps else frame.max_steps

        own_tools = [tool for tool in tools if frame.permits(tool.name)]
        self.tools: List[BaseTool] = own_tools + list(delegated_tools)
        if all(tool.name != final_answer.name for tool in self.tools):
            self.tools.append(final_answer)

        self.executor = executor or ToolCallExecutor(self.tools, approval_checker=approval_checker)
        self.client = ChatModelClient(model, self.tools)
        self.memory = Memory(system_prompt or DEFAULT_SYSTEM_PROMPT)

        guards = settings.guards
        self.repetition_config = repetition_config or RepetitionConfig.from_settings(guards)
        self.drift_config = drift_config or DriftConfig.from_settings(guards)
        self.terminate_on_severe_drift = guards.terminate_on_severe_drift
        self.severe_drift_grace_steps = guards.severe_drift_grace_steps
        self.action_timeout = action_timeout if action_timeout is not None else settings.governance.action_timeout
        self.step_callbacks = list(step_callbacks)

    # ========== Entry points ==========

    def run_suspendable(self, task: str) -> Suspendable[RunResult]:
        return Suspendable(lambda: self._loop(task), name=self.name)

    async def arun(self, task: str, handler: ResponseHandler = sync_response) -> RunResult:
        return await self.run_suspendable(task).drive(handler)

    def run(self, task: str, handler: ResponseHandler = sync_response) -> RunResult:
        """Blocking run. Must not be called from inside a running event loop."""
        return asyncio.run(self.arun(task, handler))

    @property
    def steps(self) -> Tuple[Step, ...]:
        return self.memory.steps

    # ========== Loop ==========

    async def _loop(self, task: str) -> RunResult:
        task = str(task)
        self.memory.start(task)
        started = time.monotonic()
        max_steps = self.max_steps
        usage = TokenUsage.zero()
        guidance: Tuple[str, ...] = ()
        detections: List[GuardReport] = []
        step_number = 0

        LOGGER.info(f"[{self.name}] Starting run (depth={self.frame.depth}, max_steps={max_steps})")

        while True:
            step_number += 1
            step_started = time.monotonic()

            messages = self.memory.to_messages(guidance=guidance, max_steps=max_steps)
            response, step_usage = await self.client.generate(messages)
            usage = usage + step_usage
            action = parse_action(response)

            outcome = await self._execute(action, RunContext(self.name, step_number, max_steps, self.frame))

            step = Step(
                step_number=step_number,
                action=action,
                observation=outcome.observation,
                model_output=message_text(response),
                token_usage=step_usage,
                error=outcome.error,
                is_final_answer=outcome.is_final_answer,
                call_results=outcome.call_results,
                injected_guidance=guidance,
                duration=time.monotonic() - step_started,
            )
            self.memory.append(step)
            log_step(LOGGER, self.name, step, max_steps)
            await self._notify(step)

            guidance = ()
            if not step.is_final_answer:
                guidance, max_steps = self._check_guards(task, step_number, max_steps, detections)

            decision = step_route(self.name, step, max_steps)
            if decision == "continue":
                continue

            state = RunState.SUCCESS if decision == "final_answer" else RunState.MAX_STEPS_REACHED
            output = outcome.output if step.is_final_answer else (step.error or step.observation)
            return RunResult(
                output=output,
                state=state,
                steps=self.memory.steps,
                token_usage=usage,
                duration=time.monotonic() - started,
                agent_name=self.name,
                detections=tuple(detections),
            )

    async def _execute(self, action: Action, context: RunContext) -> ExecutionOutcome:
        if isinstance(action, FinalAnswerAction):
            return ExecutionOutcome(output=action.answer, is_final_answer=True)

        token = _run_context.set(context)
        try:
            outcome = self.executor.execute(action, self.action_timeout)
            if inspect.isawaitable(outcome):
                outcome = await outcome
        except FatalLoopError:
            raise
        except Exception as e:
            raise ExecutorError(f"Executor failed on step {context.step_number} of '{self.name}': {e}") from e
        finally:
            _run_context.reset(token)
        return outcome

    async def _notify(self, step: Step) -> None:
        for callback in self.step_callbacks:
            result = callback(step)
            if inspect.isawaitable(result):
                await result

    def _check_guards(
        self, task: str, step_number: int, max_steps: int, detections: List[GuardReport]
    ) -> Tuple[Tuple[str, ...], int]:
        """Run the guard detectors; returns guidance for the next step and the (possibly reduced) budget."""
        steps = self.memory.steps
        guidance: List[str] = []

        repetition = check_repetition(steps, self.repetition_config)
        if repetition.detected:
            details = {"pattern": repetition.pattern, "count": repetition.count}
            detections.append(GuardReport(step_number, "repetition", details, repetition.guidance))
            log_guard_detection(LOGGER, "repetition", self.name, step_number, details)
            guidance.append(repetition.guidance)

        drift = check_goal_drift(task, steps, self.drift_config)
        if drift.drifting:
            details = {
                "level": drift.level.value,
                "task_relevance": drift.task_relevance,
                "off_topic_count": drift.off_topic_count,
            }
            detections.append(GuardReport(step_number, "drift", details, drift.guidance))
            log_guard_detection(LOGGER, "drift", self.name, step_number, details)
            guidance.append(drift.guidance)

            if drift.critical and self.terminate_on_severe_drift:
                clamped = min(max_steps, step_number + self.severe_drift_grace_steps)
                if clamped < max_steps:
                    LOGGER.warning(f"[{self.name}] Severe drift: budget cut from {max_steps} to {clamped} steps")
                    max_steps = clamped
                    guidance.append(GRACE_STEP_NOTICE)

        return tuple(guidance), max_steps
