"""final_answer tool - ends the run with an answer."""

from langchain_core.tools import tool


@tool
def final_answer(answer: str) -> str:
    """Give the final answer to the task and stop.

    Args:
        answer: The complete answer
    """
    # Intercepted by the step loop before execution; kept callable for direct use.
    return answer
