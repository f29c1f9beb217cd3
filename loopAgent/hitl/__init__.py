"""Human-in-the-loop approval rules for tool calls."""

from .approval_checker import ApprovalChecker, ApprovalDecision

__all__ = [
    "ApprovalChecker",
    "ApprovalDecision",
]
