"""Agent Registry - named AgentTemplates available to the orchestrator and to delegation."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from .schema import AgentTemplate

LOGGER = logging.getLogger(__name__)


class AgentRegistry:
    """Templates by name.

    Templates are immutable, so the registry can be read from many units at
    once; registration itself is expected to happen before any run starts.
    """

    def __init__(self, templates: Iterable[AgentTemplate] = ()):
        self._templates: Dict[str, AgentTemplate] = {}
        for template in templates:
            self.register(template)

    # ========== Registration Methods ==========

    def register(self, template: AgentTemplate, replace: bool = False) -> AgentTemplate:
        """Register a template.

        Raises:
            ValueError: A template with this name exists and ``replace`` is False
        """
        if template.name in self._templates and not replace:
            raise ValueError(f"Agent already registered: {template.name}")
        self._templates[template.name] = template
        LOGGER.debug(f"Registered agent: {template.name}")
        return template

    def unregister(self, name: str) -> None:
        if self._templates.pop(name, None) is not None:
            LOGGER.debug(f"Unregistered agent: {name}")

    # ========== Query Methods ==========

    def get(self, name: str) -> AgentTemplate:
        """Template by name.

        Raises:
            KeyError: Unknown agent
        """
        if name not in self._templates:
            raise KeyError(f"Agent not registered: {name}. Known agents: {', '.join(self.names()) or 'none'}")
        return self._templates[name]

    def get_optional(self, name: str) -> Optional[AgentTemplate]:
        return self._templates.get(name)

    def names(self) -> List[str]:
        return sorted(self._templates)

    def list_templates(self) -> List[AgentTemplate]:
        return [self._templates[name] for name in self.names()]

    def describe(self) -> str:
        """One line per agent, for prompts and logs."""
        return "\n".join(f"- {t.name}: {t.description}" for t in self.list_templates())

    def __contains__(self, name: str) -> bool:
        return name in self._templates

    def __len__(self) -> int:
        return len(self._templates)
