"""Logging utilities for loopAgent."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from loopAgent.config.settings import get_settings

LOGGER_NAME = "loopAgent"


def _log_file(log_dir: str) -> Path:
    logs_dir = Path(log_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir / f"loopagent_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"


def _truncate(value: Any, max_length: Optional[int] = None) -> str:
    if max_length is None:
        max_length = get_settings().observability.log_prompt_max_length
    text = str(value)
    if len(text) > max_length:
        return text[:max_length] + "... (truncated)"
    return text


def setup_logging(level: Optional[int] = None, log_dir: Optional[str] = None) -> logging.Logger:
    """Setup logging configuration for loopAgent.

    Args:
        level: Package logger level (default: LOG_LEVEL from settings)
        log_dir: Directory for the session log file (default: LOG_DIR from settings)

    Returns:
        Configured logger instance
    """
    observability = get_settings().observability
    if level is None:
        level = logging.getLevelName(observability.log_level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    log_file = _log_file(log_dir or observability.log_dir)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Clear existing handlers
    logger.handlers = []

    # File handler (detailed logs)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_handler.setFormatter(file_formatter)

    # Console handler (user-friendly)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    logger.info("=" * 80)
    logger.info("loopAgent session started")
    logger.info(f"Log file: {log_file}")
    logger.info("=" * 80)

    return logger


def log_step(logger: logging.Logger, agent_name: str, step: Any, max_steps: int) -> None:
    """Log one completed loop step.

    Args:
        logger: Logger instance
        agent_name: Name of the agent that ran the step
        step: The appended Step
        max_steps: The agent's step budget
    """
    status = "final" if step.is_final_answer else ("error" if step.error else "ok")
    logger.info(f"[{agent_name}] step {step.step_number}/{max_steps} - {step.action.kind} - {status}")
    logger.debug(f"  Observation: {_truncate(step.observation)}")
    if step.error:
        logger.debug(f"  Error: {_truncate(step.error)}")


def log_control_request(logger: logging.Logger, request: Any, agent_name: str = "") -> None:
    """Log a control request leaving a suspended computation."""
    origin = f"[{agent_name}] " if agent_name else ""
    logger.info(f"{origin}Control request {request.kind} ({request.id})")
    logger.debug(f"  Prompt: {_truncate(request.describe())}")


def log_control_response(logger: logging.Logger, response: Any) -> None:
    """Log the response that resumes a suspended computation."""
    logger.info(f"Control response for {response.request_id} (approved={response.approved})")
    logger.debug(f"  Value: {_truncate(response.value)}")


def log_guard_detection(logger: logging.Logger, guard: str, agent_name: str, step_number: int, details: Dict[str, Any]) -> None:
    """Log a guard detector firing.

    Args:
        logger: Logger instance
        guard: Detector name (repetition/drift)
        agent_name: Name of the agent under observation
        step_number: Step after which the detector ran
        details: Detector-specific fields
    """
    logger.warning(f"[{agent_name}] {guard} guard fired after step {step_number}")
    logger.debug(f"  Details: {json.dumps(details, ensure_ascii=False, default=str)}")


def log_routing_decision(logger: logging.Logger, agent_name: str, decision: str, reason: str, step_number: int) -> None:
    """Log the loop's continue/terminate decision."""
    logger.info(f"[{agent_name}] Routing after step {step_number}: {decision}")
    logger.debug(f"  Reason: {reason}")


def log_spawn(logger: logging.Logger, parent: str, child: str, depth: int, max_steps: int, mode: str) -> None:
    """Log a sub-agent spawn."""
    logger.info(f"Spawn: {parent} -> {child} (depth={depth}, max_steps={max_steps}, mode={mode})")


def log_unit_result(logger: logging.Logger, task_id: str, agent_name: str, success: bool, duration: float) -> None:
    """Log one isolated unit finishing."""
    status = "✓ Success" if success else "✗ Failed"
    logger.info(f"Unit {task_id} ({agent_name}) - {status} in {duration:.2f}s")


def log_error(
    logger: logging.Logger, error_type: str, error_msg: str, context: Optional[Dict[str, Any]] = None
) -> None:
    """Log error with context.

    Args:
        logger: Logger instance
        error_type: Type of error
        error_msg: Error message
        context: Additional context
    """
    logger.error(f"ERROR [{error_type}]: {error_msg}")
    if context:
        logger.error(f"  Context: {json.dumps(context, ensure_ascii=False, indent=2, default=str)}")
