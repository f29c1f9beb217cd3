"""Model adapter used by the step loop.

Any langchain chat model (or any object with ``ainvoke(messages)``) can back
an agent. ``build_chat_model`` creates the default OpenAI-compatible client
from settings.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional, Tuple

from langchain_core.messages import AIMessage, BaseMessage
from langchain_openai import ChatOpenAI

from loopAgent.config.settings import ModelSettings, get_settings
from loopAgent.loop.parsing import message_text
from loopAgent.loop.state import TokenUsage
from loopAgent.utils.error_handler import FatalLoopError, ModelInvocationError, handle_model_error
from loopAgent.utils.logging_utils import log_error

LOGGER = logging.getLogger(__name__)


def build_chat_model(settings: Optional[ModelSettings] = None) -> ChatOpenAI:
    """Construct an OpenAI-compatible chat model from settings.

    Raises:
        RuntimeError: No API key configured
    """
    settings = settings or get_settings().model
    if not settings.api_key:
        raise RuntimeError(f"No API key configured for model {settings.model_id} (set MODEL_API_KEY)")
    kwargs = {
        "model": settings.model_id,
        "api_key": settings.api_key,
        "temperature": settings.temperature,
        "max_retries": settings.max_retries,
    }
    if settings.base_url:
        kwargs["base_url"] = settings.base_url
    return ChatOpenAI(**kwargs)


def extract_token_usage(message: Any) -> TokenUsage:
    """Read token counts from a model response.

    Prefers the standardized ``usage_metadata``; falls back to the
    OpenAI-style ``response_metadata["token_usage"]``.
    """
    usage = getattr(message, "usage_metadata", None)
    if usage:
        input_tokens = int(usage.get("input_tokens", 0) or 0)
        output_tokens = int(usage.get("output_tokens", 0) or 0)
        total = int(usage.get("total_tokens", 0) or 0) or input_tokens + output_tokens
        return TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens, total_tokens=total)

    metadata = getattr(message, "response_metadata", None) or {}
    token_usage = metadata.get("token_usage") or {}
    if token_usage:
        input_tokens = int(token_usage.get("prompt_tokens", 0) or 0)
        output_tokens = int(token_usage.get("completion_tokens", 0) or 0)
        total = int(token_usage.get("total_tokens", 0) or 0) or input_tokens + output_tokens
        return TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens, total_tokens=total)

    return TokenUsage.zero()


class ChatModelClient:
    """Binds the tool catalog to a model and normalizes its responses."""

    def __init__(self, model: Any, tools: Iterable[Any] = ()):
        self.model = model
        self.tools = list(tools)
        self._runnable = self._bind_tools(model, self.tools)

    @staticmethod
    def _bind_tools(model: Any, tools: List[Any]) -> Any:
        if not tools:
            return model
        bind_tools = getattr(model, "bind_tools", None)
        if bind_tools is None:
            return model
        try:
            return bind_tools(tools)
        except NotImplementedError:
            LOGGER.debug(f"{type(model).__name__} does not support tool binding; calling it without tool schemas")
            return model

    async def generate(self, messages: List[BaseMessage]) -> Tuple[AIMessage, TokenUsage]:
        """Ask the model for the next action.

        Raises:
            ModelInvocationError: The model call failed
        """
        try:
            response = await self._runnable.ainvoke(messages)
        except FatalLoopError:
            raise
        except Exception as e:
            log_error(
                LOGGER, type(e).__name__, f"Model invocation failed: {e}", {"model": type(self.model).__name__}
            )
            raise ModelInvocationError(str(e), user_message=handle_model_error(e)) from e

        if not isinstance(response, AIMessage):
            response = AIMessage(content=message_text(response))
        return response, extract_token_usage(response)
