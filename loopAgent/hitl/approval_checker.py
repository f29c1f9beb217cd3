"""Approval checker deciding which tool calls need a Confirmation."""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml

LOGGER = logging.getLogger(__name__)

DEFAULT_RULES_PATH = Path(__file__).resolve().parent.parent / "config" / "approval_rules.yaml"

RISK_LEVELS_ORDER = ["critical", "high", "medium", "low"]
IRREVERSIBLE_RISK_LEVELS = frozenset({"critical", "high"})


@dataclass(frozen=True)
class ApprovalDecision:
    """Outcome of an approval check."""

    needs_approval: bool
    reason: str = ""
    risk_level: str = "low"  # low, medium, high, critical

    @property
    def reversible(self) -> bool:
        return self.risk_level not in IRREVERSIBLE_RISK_LEVELS


class ApprovalChecker:
    """Tool-call approval rules.

    Four layers, highest priority first:
    1. Custom per-tool checkers registered in code
    2. Global risk patterns (matched against every argument value)
    3. Per-tool rules from the YAML config
    4. Builtin defaults
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Args:
            config_path: YAML rules file (optional)
        """
        self.config_path = Path(config_path) if config_path else None
        self.rules = self._load_config() if self.config_path else {}
        self.custom_checkers: Dict[str, Callable[[dict], ApprovalDecision]] = {}
        self.global_patterns = self._load_global_patterns()

    @classmethod
    def with_default_rules(cls) -> "ApprovalChecker":
        return cls(config_path=DEFAULT_RULES_PATH)

    def _load_config(self) -> dict:
        if not self.config_path or not self.config_path.exists():
            return {}

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            LOGGER.warning(f"Failed to load approval config {self.config_path}: {e}")
            return {}

    def _load_global_patterns(self) -> Dict[str, Any]:
        global_config = self.rules.get("global", {})
        if not global_config.get("enabled", True):
            return {}
        risk_patterns = global_config.get("risk_patterns", {})

        patterns_by_level = {}
        for level, pattern_config in risk_patterns.items():
            if isinstance(pattern_config, dict):
                patterns_by_level[level] = {
                    "patterns": pattern_config.get("patterns", []),
                    "action": pattern_config.get("action", "require_approval"),
                    "reason": pattern_config.get("reason", f"Matched global {level} risk pattern"),
                }

        return patterns_by_level

    def register_checker(self, tool_name: str, checker: Callable[[dict], ApprovalDecision]) -> None:
        """Register a custom checker for one tool.

        Args:
            tool_name: Tool name
            checker: Receives the call args, returns an ApprovalDecision
        """
        self.custom_checkers[tool_name] = checker

    def check(self, tool_name: str, args: dict) -> ApprovalDecision:
        """Decide whether a tool call needs approval.

        Args:
            tool_name: Tool name
            args: Tool arguments

        Returns:
            ApprovalDecision
        """
        if tool_name in self.custom_checkers:
            return self.custom_checkers[tool_name](args)

        global_decision = self._check_global_patterns(args)
        if global_decision.needs_approval:
            return global_decision

        if tool_name in self.rules.get("tools", {}):
            decision = self._check_config_rules(tool_name, args)
            if decision.needs_approval:
                return decision

        return self._check_builtin_rules(tool_name, args)

    def _check_global_patterns(self, args: dict) -> ApprovalDecision:
        if not self.global_patterns:
            return ApprovalDecision(needs_approval=False)

        args_str = _args_text(args)

        for risk_level in RISK_LEVELS_ORDER:
            if risk_level not in self.global_patterns:
                continue

            pattern_config = self.global_patterns[risk_level]
            if pattern_config["action"] != "require_approval":
                continue

            for pattern in pattern_config["patterns"]:
                if re.search(pattern, args_str, re.IGNORECASE):
                    return ApprovalDecision(
                        needs_approval=True,
                        reason=pattern_config["reason"],
                        risk_level=risk_level,
                    )

        return ApprovalDecision(needs_approval=False)

    def _check_config_rules(self, tool_name: str, args: dict) -> ApprovalDecision:
        tool_config = self.rules["tools"][tool_name] or {}

        if not tool_config.get("enabled", True):
            return ApprovalDecision(needs_approval=False)

        if tool_config.get("always_require_approval"):
            return ApprovalDecision(
                needs_approval=True,
                reason=tool_config.get("reason", f"'{tool_name}' always requires approval"),
                risk_level=tool_config.get("risk_level", "medium"),
            )

        args_str = _args_text(args)
        patterns = tool_config.get("patterns", {})
        for risk_level in RISK_LEVELS_ORDER:
            for pattern in patterns.get(risk_level, []):
                if re.search(pattern, args_str, re.IGNORECASE):
                    action = tool_config.get("actions", {}).get(risk_level, "require_approval")
                    if action == "require_approval":
                        return ApprovalDecision(
                            needs_approval=True,
                            reason=f"Matched {risk_level} risk pattern: {pattern}",
                            risk_level=risk_level,
                        )

        return ApprovalDecision(needs_approval=False)

    def _check_builtin_rules(self, tool_name: str, args: dict) -> ApprovalDecision:
        if re.match(r"^(delete|remove|drop|destroy|purge)_", tool_name):
            return ApprovalDecision(
                needs_approval=True,
                reason=f"'{tool_name}' destroys data",
                risk_level="high",
            )

        if re.match(r"^(send|publish|post|deploy)_", tool_name):
            return ApprovalDecision(
                needs_approval=True,
                reason=f"'{tool_name}' has external side effects",
                risk_level="medium",
            )

        return ApprovalDecision(needs_approval=False)


def _args_text(args: dict) -> str:
    return " ".join(str(v) for v in (args or {}).values())
