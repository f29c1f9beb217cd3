"""Model adapters."""

from .chat_model import ChatModelClient, build_chat_model, extract_token_usage

__all__ = ["ChatModelClient", "build_chat_model", "extract_token_usage"]
