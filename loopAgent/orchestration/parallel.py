"""Run many independent agent tasks in parallel, each in an isolated unit.

A unit is a worker thread with its own event loop running a fresh agent built
from a registered template. Units share no mutable state: the frozen
AgentTask goes in, a frozen UnitSuccess/UnitFailure comes out, and nothing
raised inside a unit reaches the orchestrator or its siblings.

Timeouts are enforced on the orchestrator side only. A unit that times out is
reported as failed, but its thread keeps running until the agent stops on its
own (its step budget bounds how long that can take).
"""

from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional

from loopAgent.agents.registry import AgentRegistry
from loopAgent.agents.schema import AgentTemplate
from loopAgent.config.settings import get_settings
from loopAgent.delegation.frame import DelegationFrame, SpawnPolicy
from loopAgent.loop.state import Step
from loopAgent.orchestration.types import AgentTask, OrchestratorResult, UnitFailure, UnitResult, UnitSuccess
from loopAgent.utils.error_handler import classify_error
from loopAgent.utils.logging_utils import log_error, log_unit_result

LOGGER = logging.getLogger(__name__)

MAX_STEPS_REACHED = "MaxStepsReached"


class _StepCounter:
    """Step callback recording progress, readable after a timeout."""

    def __init__(self) -> None:
        self.count = 0

    def __call__(self, step: Step) -> None:
        self.count = step.step_number


class ParallelOrchestrator:
    """Fan out AgentTasks to isolated units and collect their results.

    Args:
        registry: Templates units are built from
        max_concurrent: Units running at once (default: ORCHESTRATOR_MAX_CONCURRENT)
        policy: Spawn policy of each unit's root frame (default: from settings)
    """

    def __init__(
        self,
        registry: AgentRegistry,
        max_concurrent: Optional[int] = None,
        policy: Optional[SpawnPolicy] = None,
    ):
        settings = get_settings()
        self.registry = registry
        self.max_concurrent = max_concurrent or settings.orchestrator.max_concurrent
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.default_timeout = settings.orchestrator.default_timeout
        self.policy = policy or SpawnPolicy.from_settings(settings.governance)

    async def run_parallel(self, tasks: Iterable[AgentTask]) -> OrchestratorResult:
        """Run all tasks and wait for every unit.

        Raises:
            KeyError: A task names an unregistered agent (before any unit starts)
            ValueError: A task's template, or one it delegates to, hands every
                instance the same model object (before any unit starts)
        """
        tasks = tuple(tasks)
        for task in tasks:
            self._check_isolated(self.registry.get(task.agent_name))

        started = time.monotonic()
        LOGGER.info(f"Running {len(tasks)} task(s), max_concurrent={self.max_concurrent}")

        semaphore = asyncio.Semaphore(self.max_concurrent)
        # One thread per task at most, so timed-out units never hold up queued ones
        pool = ThreadPoolExecutor(max_workers=max(1, len(tasks)), thread_name_prefix="loopagent-unit")
        try:
            results: List[UnitResult] = await asyncio.gather(
                *(self._run_bounded(task, semaphore, pool) for task in tasks)
            )
        finally:
            pool.shutdown(wait=False)

        result = OrchestratorResult(
            succeeded=tuple(r for r in results if isinstance(r, UnitSuccess)),
            failed=tuple(r for r in results if isinstance(r, UnitFailure)),
            duration=time.monotonic() - started,
        )
        LOGGER.info(
            f"Batch done: {result.success_count} succeeded, {result.failure_count} failed "
            f"in {result.duration:.2f}s"
        )
        return result

    @staticmethod
    def _check_isolated(template: AgentTemplate) -> None:
        shared = [t.name for t in template.walk() if t.shares_model]
        if shared:
            raise ValueError(
                f"Agent '{template.name}' cannot run in parallel units: "
                f"{', '.join(shared)} share one model instance; give them a model_factory"
            )

    def run_parallel_sync(self, tasks: Iterable[AgentTask]) -> OrchestratorResult:
        """Blocking variant of run_parallel. Must not be called from a running event loop."""
        return asyncio.run(self.run_parallel(tasks))

    async def run_single(self, task: AgentTask) -> UnitResult:
        result = await self.run_parallel([task])
        return (result.succeeded + result.failed)[0]

    async def _run_bounded(self, task: AgentTask, semaphore: asyncio.Semaphore, pool: ThreadPoolExecutor) -> UnitResult:
        async with semaphore:
            timeout = task.timeout if task.timeout is not None else self.default_timeout
            counter = _StepCounter()
            started = time.monotonic()
            future = asyncio.get_running_loop().run_in_executor(pool, self._run_unit, task, counter)
            try:
                result = await asyncio.wait_for(future, timeout=timeout)
            except asyncio.TimeoutError:
                LOGGER.warning(f"Unit {task.task_id} ({task.agent_name}) timed out after {timeout}s")
                result = UnitFailure(
                    task_id=task.task_id,
                    agent_name=task.agent_name,
                    error_kind="TimeoutError",
                    error_message=f"Timed out after {timeout}s",
                    steps_taken=counter.count,
                    duration=time.monotonic() - started,
                    trace_id=task.trace_id,
                )
            log_unit_result(LOGGER, task.task_id, task.agent_name, result.success, result.duration)
            return result

    def _run_unit(self, task: AgentTask, counter: _StepCounter) -> UnitResult:
        """Body of one unit; runs on a worker thread with a private event loop."""
        started = time.monotonic()
        try:
            template = self.registry.get(task.agent_name)
            max_steps = task.config.get("max_steps") or template.max_steps or get_settings().governance.max_steps
            frame = DelegationFrame.root(template.name, max_steps=int(max_steps), policy=self.policy)
            agent = template.instantiate(frame=frame, step_callbacks=[counter])
            run = asyncio.run(agent.arun(task.prompt_text))
        except Exception as e:
            kind, message = classify_error(e)
            log_error(
                LOGGER,
                kind,
                message,
                {"task_id": task.task_id, "agent": task.agent_name, "steps_taken": counter.count},
            )
            return UnitFailure(
                task_id=task.task_id,
                agent_name=task.agent_name,
                error_kind=kind,
                error_message=message,
                steps_taken=counter.count,
                duration=time.monotonic() - started,
                trace_id=task.trace_id,
            )

        if run.success:
            return UnitSuccess(
                task_id=task.task_id,
                agent_name=task.agent_name,
                output=run.output,
                steps_taken=run.steps_taken,
                token_usage=run.token_usage,
                duration=time.monotonic() - started,
                trace_id=task.trace_id,
            )
        return UnitFailure(
            task_id=task.task_id,
            agent_name=task.agent_name,
            error_kind=MAX_STEPS_REACHED,
            error_message=f"No final answer after {run.steps_taken} step(s)",
            steps_taken=run.steps_taken,
            duration=time.monotonic() - started,
            trace_id=task.trace_id,
        )
