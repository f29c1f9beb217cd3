"""Turn a model response into an action."""

from __future__ import annotations

import logging
import re
import uuid
from typing import Any

from langchain_core.messages import AIMessage

from loopAgent.loop.state import Action, CodeAction, FinalAnswerAction, ToolCall, ToolCallAction

LOGGER = logging.getLogger(__name__)

FINAL_ANSWER_TOOL = "final_answer"

CODE_BLOCK_RE = re.compile(r"```(?:python|py)?[ \t]*\n(.*?)```", re.DOTALL)


def message_text(message: Any) -> str:
    """Plain text of a message whose content may be a list of content blocks."""
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(str(block.get("text", "")))
        return "".join(parts)
    return str(content)


def parse_action(message: AIMessage) -> Action:
    """Map a model response to the action it proposes.

    - tool calls -> ToolCallAction (a ``final_answer`` call -> FinalAnswerAction)
    - a fenced python block -> CodeAction
    - anything else -> FinalAnswerAction with the text
    """
    tool_calls = getattr(message, "tool_calls", None) or []
    if tool_calls:
        for call in tool_calls:
            if call.get("name") == FINAL_ANSWER_TOOL:
                if len(tool_calls) > 1:
                    LOGGER.debug("final_answer issued with other tool calls; the others are dropped")
                args = call.get("args") or {}
                return FinalAnswerAction(answer=args.get("answer", ""), tool_call_id=call.get("id"))
        return ToolCallAction(
            calls=tuple(
                ToolCall(
                    name=call["name"],
                    args=call.get("args") or {},
                    id=call.get("id") or f"call_{uuid.uuid4().hex[:12]}",
                )
                for call in tool_calls
            )
        )

    text = message_text(message)
    match = CODE_BLOCK_RE.search(text)
    if match:
        return CodeAction(code=match.group(1).strip())
    return FinalAnswerAction(answer=text.strip())
