"""ask_human tool - the agent actively requests user input."""

from typing import List, Optional

from langchain_core.tools import tool
from pydantic import BaseModel, Field

from loopAgent.control.handlers import request_input

NO_ANSWER = "(the user did not provide an answer)"


class AskHumanInput(BaseModel):
    """Input of the ask_human tool."""

    question: str = Field(..., description="The question to ask the user")
    context: str = Field(default="", description="Why you need this information (optional)")
    choices: Optional[List[str]] = Field(default=None, description="Options the user can pick from (optional)")
    default: Optional[str] = Field(default=None, description="Answer to use when the user gives none")
    required: bool = Field(default=True, description="Whether an answer is required")


@tool(args_schema=AskHumanInput)
async def ask_human(
    question: str,
    context: str = "",
    choices: Optional[List[str]] = None,
    default: Optional[str] = None,
    required: bool = True,
) -> str:
    """Ask the user for information you cannot obtain any other way.

    Use this when a required detail is missing, when the user has to choose
    between options, or when you need confirmation before continuing.
    Ask one clear, specific question; the user's answer is returned as text.

    When running as a sub-agent, the question travels up to whoever started
    the top-level agent and the answer comes back here.
    """
    answer = await request_input(
        question,
        options=choices or (),
        default_value=default,
        context={"context": context} if context else None,
    )

    if not answer and default:
        return default

    if required and not answer:
        return NO_ANSWER

    return str(answer or "")
