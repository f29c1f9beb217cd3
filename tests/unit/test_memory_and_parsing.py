"""Unit tests for step memory, message rendering and action parsing."""

import dataclasses

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage

from loopAgent.loop.memory import Memory
from loopAgent.loop.parsing import parse_action
from loopAgent.loop.state import (
    CallResult,
    CodeAction,
    FinalAnswerAction,
    Step,
    TokenUsage,
    ToolCall,
    ToolCallAction,
)


def _tool_step(number, query="ruby docs", output="found it"):
    call = ToolCall(name="web_search", args={"query": query}, id=f"call_{number}")
    return Step(
        step_number=number,
        action=ToolCallAction(calls=(call,)),
        observation=output,
        call_results=(CallResult(tool_call_id=call.id, name="web_search", output=output),),
    )


class TestMemory:
    def test_append_only_in_order(self):
        memory = Memory("system")
        memory.start("task")
        memory.append(_tool_step(1))
        with pytest.raises(ValueError):
            memory.append(_tool_step(3))
        assert len(memory) == 1

    def test_steps_are_immutable(self):
        step = _tool_step(1)
        with pytest.raises(dataclasses.FrozenInstanceError):
            step.observation = "changed"

    def test_reset_keeps_system_prompt(self):
        memory = Memory("You are helpful")
        memory.start("task")
        memory.append(_tool_step(1))
        memory.reset()
        assert memory.steps == ()
        assert memory.task is None
        assert memory.system_prompt == "You are helpful"

    def test_to_messages_renders_tool_round_trip(self):
        memory = Memory("system")
        memory.start("Find ruby docs")
        memory.append(_tool_step(1))

        messages = memory.to_messages(max_steps=5)
        assert isinstance(messages[0], SystemMessage)
        assert isinstance(messages[1], HumanMessage) and "Find ruby docs" in messages[1].content
        assert isinstance(messages[2], AIMessage)
        assert messages[2].tool_calls[0]["name"] == "web_search"
        assert isinstance(messages[3], ToolMessage)
        assert messages[3].tool_call_id == "call_1"
        assert messages[3].content.startswith("found it")
        assert "4 remaining" in messages[3].content

    def test_budget_note_only_on_latest_step(self):
        memory = Memory("system")
        memory.start("task")
        memory.append(_tool_step(1))
        memory.append(_tool_step(2))
        tool_messages = [m for m in memory.to_messages(max_steps=3) if isinstance(m, ToolMessage)]
        assert "remaining" not in tool_messages[0].content
        assert "1 remaining" in tool_messages[1].content

    def test_guidance_rendered_after_history(self):
        memory = Memory("system")
        memory.start("task")
        memory.append(_tool_step(1))
        messages = memory.to_messages(guidance=["WARNING: refocus"])
        assert messages[-1].content == "WARNING: refocus"

    def test_code_step_rendered_as_observation(self):
        memory = Memory("system")
        memory.start("task")
        memory.append(Step(step_number=1, action=CodeAction(code="print(1)"), observation="1"))
        messages = memory.to_messages()
        assert "Observation:\n1" in messages[-1].content


class TestParsing:
    def test_tool_calls(self):
        message = AIMessage(content="", tool_calls=[{"name": "web_search", "args": {"query": "x"}, "id": "c1"}])
        action = parse_action(message)
        assert isinstance(action, ToolCallAction)
        assert action.calls[0].name == "web_search"
        assert action.calls[0].args["query"] == "x"

    def test_final_answer_tool_call(self):
        message = AIMessage(content="", tool_calls=[{"name": "final_answer", "args": {"answer": "42"}, "id": "c1"}])
        action = parse_action(message)
        assert isinstance(action, FinalAnswerAction)
        assert action.answer == "42"

    def test_code_block(self):
        action = parse_action(AIMessage(content="Let me compute.\n```python\nprint(2 + 2)\n```"))
        assert isinstance(action, CodeAction)
        assert action.code == "print(2 + 2)"

    def test_plain_text_is_final_answer(self):
        action = parse_action(AIMessage(content="  Paris  "))
        assert isinstance(action, FinalAnswerAction)
        assert action.answer == "Paris"

    def test_content_blocks(self):
        action = parse_action(AIMessage(content=[{"type": "text", "text": "Done."}]))
        assert action.answer == "Done."


class TestSignatures:
    def test_signature_normalizes_arguments(self):
        a = ToolCall(name="search", args={"query": "  Ruby   Docs "})
        b = ToolCall(name="search", args={"query": "ruby docs"})
        assert a.signature() == b.signature()

    def test_token_usage_adds(self):
        total = TokenUsage(1, 2, 3) + TokenUsage(10, 20, 30)
        assert total == TokenUsage(11, 22, 33)
