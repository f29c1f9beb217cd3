"""Guard detectors: pure checks over step history."""

from .drift import DriftConfig, DriftLevel, DriftResult, calculate_step_relevance, check_goal_drift, extract_key_terms
from .repetition import RepetitionConfig, RepetitionResult, check_repetition, text_similarity

__all__ = [
    "DriftConfig",
    "DriftLevel",
    "DriftResult",
    "RepetitionConfig",
    "RepetitionResult",
    "calculate_step_relevance",
    "check_goal_drift",
    "check_repetition",
    "extract_key_terms",
    "text_similarity",
]
