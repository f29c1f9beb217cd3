"""Goal-drift guard: flags an agent whose recent steps wander away from the task.

Relevance of a step is the share of the task's key terms that also appear in
the step (tool names, arguments, code, observation). Low mean relevance and
many off-topic steps in the window raise the drift level:

    none -> mild -> moderate -> severe

Each level above none carries guidance for the model. Severe drift tells it
to answer immediately.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional, Sequence

from loopAgent.loop.state import CodeAction, FinalAnswerAction, Step, ToolCallAction

STOP_WORDS = frozenset(
    """
    a about above after again all also am an and any are as at be because been before being below
    between both but by can could did do does doing done down during each either else few find for
    from further get give got had has have having he her here hers him his how however into is it
    its itself just let like made make many may me might more most much must my need no nor not now
    of off on once only or other our ours out over own please same she should show since so some
    such tell than that the their theirs them then there these they this those through thus too
    under until up upon use used using very want was way we were what when where which while who
    whom why will with within without would yet you your yours
    """.split()
)

MIN_TERM_LENGTH = 3


class DriftLevel(str, Enum):
    NONE = "none"
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


@dataclass(frozen=True)
class DriftConfig:
    window_size: int = 5
    similarity_threshold: float = 0.3
    max_tangent_steps: int = 3
    min_steps: int = 2
    enabled: bool = True

    @classmethod
    def strict(cls) -> "DriftConfig":
        return cls(window_size=3, similarity_threshold=0.4, max_tangent_steps=2)

    @classmethod
    def from_settings(cls, guards) -> "DriftConfig":
        return cls(
            window_size=guards.drift_window,
            similarity_threshold=guards.drift_similarity,
            max_tangent_steps=guards.drift_max_tangent_steps,
            enabled=guards.drift_enabled,
        )


@dataclass(frozen=True)
class DriftResult:
    level: DriftLevel
    task_relevance: float = 1.0
    off_topic_count: int = 0
    guidance: str = ""

    @classmethod
    def on_track(cls) -> "DriftResult":
        return cls(level=DriftLevel.NONE)

    @property
    def drifting(self) -> bool:
        return self.level is not DriftLevel.NONE

    @property
    def concerning(self) -> bool:
        return self.level in (DriftLevel.MODERATE, DriftLevel.SEVERE)

    @property
    def critical(self) -> bool:
        return self.level is DriftLevel.SEVERE


def extract_key_terms(text: str) -> FrozenSet[str]:
    """Lower-cased words of ``text`` without stop words and very short words."""
    words = re.findall(r"[a-z0-9]+", (text or "").lower())
    return frozenset(w for w in words if len(w) >= MIN_TERM_LENGTH and w not in STOP_WORDS)


def step_text(step: Step) -> str:
    action = step.action
    parts = []
    if isinstance(action, ToolCallAction):
        for call in action.calls:
            parts.append(call.name)
            parts.extend(str(value) for value in call.args.values())
    elif isinstance(action, CodeAction):
        parts.append(action.code)
    elif isinstance(action, FinalAnswerAction):
        parts.append(str(action.answer))
    if step.observation:
        parts.append(step.observation)
    return " ".join(parts)


def calculate_step_relevance(task: str, step: Step) -> float:
    """Share of the task's key terms present in the step; 1.0 when either side has none."""
    task_terms = extract_key_terms(task)
    if not task_terms:
        return 1.0
    step_terms = extract_key_terms(step_text(step))
    if not step_terms:
        return 1.0
    return len(task_terms & step_terms) / len(task_terms)


def classify(task_relevance: float, off_topic_count: int, config: DriftConfig) -> DriftLevel:
    threshold = config.similarity_threshold
    tangent = config.max_tangent_steps
    if off_topic_count >= tangent + 2 or task_relevance < threshold * 0.5:
        return DriftLevel.SEVERE
    if off_topic_count >= tangent or task_relevance < threshold * 0.8:
        return DriftLevel.MODERATE
    if off_topic_count >= tangent - 1 or task_relevance < threshold * 1.5:
        return DriftLevel.MILD
    return DriftLevel.NONE


def drift_guidance(level: DriftLevel, task: str) -> str:
    if level is DriftLevel.SEVERE:
        return (
            f"CRITICAL: Your recent steps have nothing to do with the task: '{task}'. "
            "Stop exploring and call final_answer now with the best answer you have."
        )
    if level is DriftLevel.MODERATE:
        return (
            f"WARNING: You are drifting away from the task: '{task}'. "
            "Refocus on it and only take steps that move it forward."
        )
    if level is DriftLevel.MILD:
        return f"Note: Remember the task is: '{task}'. Make sure your next step serves it."
    return ""


def check_goal_drift(task: str, steps: Sequence[Step], config: Optional[DriftConfig] = None) -> DriftResult:
    """Classify how far the trailing ``config.window_size`` steps are from ``task``."""
    config = config or DriftConfig()
    if not config.enabled or len(steps) < config.min_steps:
        return DriftResult.on_track()

    window = steps[-config.window_size:]
    relevances = [calculate_step_relevance(task, step) for step in window]
    task_relevance = sum(relevances) / len(relevances)
    off_topic = sum(1 for r in relevances if r < config.similarity_threshold)

    level = classify(task_relevance, off_topic, config)
    return DriftResult(
        level=level,
        task_relevance=round(task_relevance, 4),
        off_topic_count=off_topic,
        guidance=drift_guidance(level, task),
    )
