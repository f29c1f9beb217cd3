"""Executor that runs tool-call actions against a catalog of langchain tools."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, Optional, Tuple

from langchain_core.tools import BaseTool

from loopAgent.control.handlers import request_confirmation
from loopAgent.executors.base import ExecutionOutcome
from loopAgent.hitl.approval_checker import ApprovalChecker
from loopAgent.loop.state import Action, CallResult, CodeAction, FinalAnswerAction, ToolCall, ToolCallAction
from loopAgent.utils.error_handler import ExecutorError, FatalLoopError
from loopAgent.utils.immutable import thaw

LOGGER = logging.getLogger(__name__)

MAX_OUTPUT_CHARS = 20_000


class ToolCallExecutor:
    """Runs each call of a ToolCallAction in order.

    Tool failures (exceptions, timeouts, unknown tools, denied approvals) are
    recorded on the call result. FatalLoopError raised by a tool (a rejected
    spawn, a protocol violation) propagates unchanged.
    """

    def __init__(
        self,
        tools: Iterable[BaseTool] = (),
        approval_checker: Optional[ApprovalChecker] = None,
        max_output_chars: int = MAX_OUTPUT_CHARS,
    ):
        self._tools: Dict[str, BaseTool] = {}
        for tool in tools:
            self._tools[tool.name] = tool
        self.approval_checker = approval_checker
        self.max_output_chars = max_output_chars

    @property
    def tools(self) -> Tuple[BaseTool, ...]:
        return tuple(self._tools.values())

    @property
    def tool_names(self) -> Tuple[str, ...]:
        return tuple(self._tools)

    def restricted(self, allowed: Optional[Iterable[str]]) -> "ToolCallExecutor":
        """A copy exposing only ``allowed`` tools (all tools when None)."""
        if allowed is None:
            return ToolCallExecutor(self._tools.values(), self.approval_checker, self.max_output_chars)
        allowed = set(allowed)
        kept = [tool for name, tool in self._tools.items() if name in allowed]
        return ToolCallExecutor(kept, self.approval_checker, self.max_output_chars)

    async def execute(self, action: Action, timeout: Optional[float] = None) -> ExecutionOutcome:
        if isinstance(action, FinalAnswerAction):
            return ExecutionOutcome(output=action.answer, is_final_answer=True)

        if isinstance(action, CodeAction):
            return ExecutionOutcome(
                error="Code actions cannot run here. Call one of the available tools instead: "
                + ", ".join(self.tool_names)
            )

        if isinstance(action, ToolCallAction):
            results = []
            for call in action.calls:
                results.append(await self._run_call(call, timeout))
            errors = [f"{r.name}: {r.error}" for r in results if r.error]
            if len(results) == 1:
                output = results[0].output
            else:
                output = "\n".join(f"[{r.name}] {r.content}" for r in results)
            return ExecutionOutcome(
                output=output,
                error="; ".join(errors) or None,
                call_results=tuple(results),
            )

        raise ExecutorError(f"Unsupported action type: {type(action).__name__}")

    async def _run_call(self, call: ToolCall, timeout: Optional[float]) -> CallResult:
        tool = self._tools.get(call.name)
        if tool is None:
            available = ", ".join(self.tool_names) or "none"
            return CallResult(
                tool_call_id=call.id,
                name=call.name,
                error=f"Unknown tool '{call.name}'. Available tools: {available}",
            )

        args = thaw(call.args)

        if self.approval_checker is not None:
            decision = self.approval_checker.check(call.name, args)
            if decision.needs_approval:
                approved = await request_confirmation(
                    call.name,
                    description=decision.reason,
                    consequences=(f"{key}={value}" for key, value in args.items()),
                    reversible=decision.reversible,
                    risk_level=decision.risk_level,
                )
                if not approved:
                    LOGGER.info(f"Tool call {call.name} denied ({decision.risk_level})")
                    return CallResult(
                        tool_call_id=call.id,
                        name=call.name,
                        error=f"Operation cancelled: '{call.name}' was not approved ({decision.reason})",
                    )

        try:
            if timeout:
                output = await asyncio.wait_for(tool.ainvoke(args), timeout=timeout)
            else:
                output = await tool.ainvoke(args)
        except FatalLoopError:
            raise
        except asyncio.TimeoutError:
            LOGGER.warning(f"Tool {call.name} timed out after {timeout}s")
            return CallResult(tool_call_id=call.id, name=call.name, error=f"Timed out after {timeout}s")
        except Exception as e:
            LOGGER.warning(f"Tool {call.name} failed: {e}")
            message = getattr(e, "user_message", None) or str(e) or e.__class__.__name__
            return CallResult(tool_call_id=call.id, name=call.name, error=message)

        return CallResult(tool_call_id=call.id, name=call.name, output=self._render(output))

    def _render(self, output) -> str:
        text = output if isinstance(output, str) else str(getattr(output, "content", output))
        if len(text) > self.max_output_chars:
            text = text[: self.max_output_chars] + "\n... (truncated)"
        return text
