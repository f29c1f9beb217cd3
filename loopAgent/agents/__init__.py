"""Agent templates and their registry."""

from .registry import AgentRegistry
from .schema import AgentTemplate

__all__ = ["AgentRegistry", "AgentTemplate"]
