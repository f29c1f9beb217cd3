"""Per-agent step history and its rendering into chat messages."""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage

from loopAgent.loop.state import CodeAction, FinalAnswerAction, Step, ToolCallAction


def budget_note(step_number: int, max_steps: int) -> str:
    remaining = max(max_steps - step_number, 0)
    return f"[Step {step_number}/{max_steps} done, {remaining} remaining]"


class Memory:
    """System prompt, task and the append-only list of steps of one agent.

    Owned by exactly one agent instance; never shared between agents or units.
    """

    def __init__(self, system_prompt: str):
        self.system_prompt = system_prompt
        self.task: Optional[str] = None
        self._steps: List[Step] = []

    @property
    def steps(self) -> Tuple[Step, ...]:
        return tuple(self._steps)

    @property
    def last_step(self) -> Optional[Step]:
        return self._steps[-1] if self._steps else None

    def __len__(self) -> int:
        return len(self._steps)

    def start(self, task: str) -> None:
        self.reset()
        self.task = task

    def append(self, step: Step) -> None:
        expected = len(self._steps) + 1
        if step.step_number != expected:
            raise ValueError(f"Step {step.step_number} appended out of order (expected {expected})")
        self._steps.append(step)

    def reset(self) -> None:
        """Clear task and steps; the system prompt is kept."""
        self.task = None
        self._steps = []

    def to_messages(self, guidance: Sequence[str] = (), max_steps: Optional[int] = None) -> List[BaseMessage]:
        """Render the history for the model.

        Args:
            guidance: Guard guidance to show before the next model call
            max_steps: When given, the latest observation carries a budget note
        """
        messages: List[BaseMessage] = [SystemMessage(content=self.system_prompt)]
        if self.task is not None:
            messages.append(HumanMessage(content=f"New task:\n{self.task}"))

        for index, step in enumerate(self._steps):
            note = None
            if max_steps is not None and index == len(self._steps) - 1:
                note = budget_note(step.step_number, max_steps)
            for text in step.injected_guidance:
                messages.append(HumanMessage(content=text))
            messages.extend(_render_step(step, note))

        for text in guidance:
            messages.append(HumanMessage(content=text))
        return messages


def _with_note(content: str, note: Optional[str]) -> str:
    return f"{content}\n\n{note}" if note else content


def _render_step(step: Step, note: Optional[str]) -> List[BaseMessage]:
    action = step.action

    if isinstance(action, ToolCallAction):
        ai = AIMessage(
            content=step.model_output,
            tool_calls=[{"name": c.name, "args": dict(c.args), "id": c.id} for c in action.calls],
        )
        rendered: List[BaseMessage] = [ai]
        results = {r.tool_call_id: r for r in step.call_results}
        for position, call in enumerate(action.calls):
            result = results.get(call.id)
            content = result.content if result else (step.error or step.observation)
            if position == len(action.calls) - 1:
                content = _with_note(content, note)
            rendered.append(ToolMessage(content=content, tool_call_id=call.id, name=call.name))
        return rendered

    if isinstance(action, CodeAction):
        observation = f"Error:\n{step.error}" if step.error else f"Observation:\n{step.observation}"
        return [
            AIMessage(content=step.model_output or f"```python\n{action.code}\n```"),
            HumanMessage(content=_with_note(observation, note)),
        ]

    if isinstance(action, FinalAnswerAction):
        return [AIMessage(content=step.model_output or str(action.answer))]

    raise TypeError(f"Unknown action type: {type(action).__name__}")
