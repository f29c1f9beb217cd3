"""Repetition guard: flags an agent that keeps doing the same thing.

Three signals are compared over the trailing steps, highest priority first:
1. tool_call: same tool names with the same normalized arguments
2. code_action: same code once whitespace is collapsed
3. observation: same (or near-identical, by trigram overlap) observation text
"""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from typing import Callable, FrozenSet, Optional, Sequence

from loopAgent.loop.state import CodeAction, Step, ToolCallAction


@dataclass(frozen=True)
class RepetitionConfig:
    window: int = 3
    similarity_threshold: float = 0.9
    enabled: bool = True

    @classmethod
    def from_settings(cls, guards) -> "RepetitionConfig":
        return cls(
            window=guards.repetition_window,
            similarity_threshold=guards.repetition_similarity,
            enabled=guards.repetition_enabled,
        )


@dataclass(frozen=True)
class RepetitionResult:
    detected: bool
    pattern: Optional[str] = None  # tool_call, code_action, observation
    count: int = 0
    guidance: str = ""

    @classmethod
    def none(cls) -> "RepetitionResult":
        return cls(detected=False)


def trigrams(text: str) -> FrozenSet[str]:
    normalized = re.sub(r"\s+", " ", text).strip().lower()
    if len(normalized) < 3:
        return frozenset({normalized}) if normalized else frozenset()
    return frozenset(normalized[i:i + 3] for i in range(len(normalized) - 2))


def text_similarity(a: str, b: str) -> float:
    """Jaccard overlap of character trigrams, in [0, 1]."""
    if a == b:
        return 1.0
    grams_a, grams_b = trigrams(a), trigrams(b)
    if not grams_a or not grams_b:
        return 0.0
    return len(grams_a & grams_b) / len(grams_a | grams_b)


def _tool_signature(step: Step) -> Optional[str]:
    return step.action.signature() if isinstance(step.action, ToolCallAction) else None


def _code_signature(step: Step) -> Optional[str]:
    return step.action.normalized() if isinstance(step.action, CodeAction) else None


def _observation(step: Step) -> Optional[str]:
    if step.is_final_answer:
        return None
    text = (step.observation or "").strip()
    return text or None


def _trailing_run(steps: Sequence[Step], feature: Callable[[Step], Optional[str]], same: Callable[[str, str], bool]) -> int:
    """Length of the run of trailing steps whose feature matches the last step's."""
    last = feature(steps[-1])
    if last is None:
        return 0
    run = 1
    for step in reversed(steps[:-1]):
        value = feature(step)
        if value is None or not same(value, last):
            break
        run += 1
    return run


def _guidance(pattern: str, count: int, steps: Sequence[Step]) -> str:
    if pattern == "tool_call":
        tool = ", ".join(steps[-1].action.tool_names)
        return (
            f"You've called '{tool}' {count} times with the same arguments. "
            "The result will not change. Try a different tool or different arguments, "
            "or call final_answer with what you already know."
        )
    if pattern == "code_action":
        return (
            f"You've run the same code {count} times. "
            "Change the approach, or call final_answer with what you already know."
        )
    return (
        f"The last {count} observations are nearly identical, so you are not making progress. "
        "Try something different, or call final_answer with what you already know."
    )


def check_repetition(steps: Sequence[Step], config: Optional[RepetitionConfig] = None) -> RepetitionResult:
    """Detect the agent repeating itself over the trailing ``config.window`` steps."""
    config = config or RepetitionConfig()
    if not config.enabled or len(steps) < config.window:
        return RepetitionResult.none()

    def similar(a: str, b: str) -> bool:
        return text_similarity(a, b) >= config.similarity_threshold

    signals = (
        ("tool_call", _tool_signature, operator.eq),
        ("code_action", _code_signature, operator.eq),
        ("observation", _observation, similar),
    )
    for pattern, feature, same in signals:
        count = _trailing_run(steps, feature, same)
        if count >= config.window:
            return RepetitionResult(
                detected=True,
                pattern=pattern,
                count=count,
                guidance=_guidance(pattern, count, steps),
            )
    return RepetitionResult.none()
