"""Environment-bound configuration objects.

This module provides Pydantic BaseSettings-based configuration loading from .env files.
All settings classes automatically load from environment variables with support for
multiple alias names (e.g., MAX_STEPS and AGENT_MAX_STEPS both work).

Example:
    from loopAgent.config.settings import get_settings

    settings = get_settings()  # Cached singleton
    max_steps = settings.governance.max_steps
    window = settings.guards.repetition_window
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


load_dotenv()


class ModelSettings(BaseSettings):
    """Chat model identifier and credentials.

    Only consulted by ``build_chat_model``; agents built with an explicit
    model object never read these values.
    """

    model_id: str = Field(
        default="chat-mid",
        validation_alias=AliasChoices("MODEL_ID", "MODEL_CHAT", "MODEL_CHAT_ID"),
    )
    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_API_KEY", "MODEL_CHAT_API_KEY", "OPENAI_API_KEY"),
    )
    base_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_BASE_URL", "MODEL_CHAT_URL", "OPENAI_BASE_URL"),
    )
    temperature: float = Field(default=0.0, ge=0.0, le=2.0, alias="MODEL_TEMPERATURE")
    max_retries: int = Field(default=2, ge=0, le=10, alias="MODEL_MAX_RETRIES")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        protected_namespaces=(),
    )


class GovernanceSettings(BaseSettings):
    """Runtime governance and control settings.

    Controls agent behavior limits and policies:
    - max_steps: Maximum reason-act-observe iterations (1-500, default: 20)
    - max_delegation_depth: Deepest allowed sub-agent nesting (default: 2)
    - max_steps_per_agent: Step ceiling for any spawned sub-agent (default: 10)
    - inherit_restrictions: Children only see tools their parent may use
    - action_timeout: Seconds an action may run before it is reported as failed
    - auto_approve_reversible: Sync mode approves reversible confirmations
    """

    max_steps: int = Field(
        default=20,
        ge=1,
        le=500,
        validation_alias=AliasChoices("MAX_STEPS", "AGENT_MAX_STEPS"),
    )
    max_delegation_depth: int = Field(
        default=2,
        ge=0,
        le=10,
        validation_alias=AliasChoices("MAX_DELEGATION_DEPTH", "SPAWN_MAX_DEPTH"),
    )
    max_steps_per_agent: int = Field(
        default=10,
        ge=1,
        le=500,
        validation_alias=AliasChoices("MAX_STEPS_PER_AGENT", "SPAWN_MAX_STEPS"),
    )
    inherit_restrictions: bool = Field(default=True, alias="INHERIT_RESTRICTIONS")
    action_timeout: Optional[float] = Field(default=None, gt=0, alias="ACTION_TIMEOUT")
    auto_approve_reversible: bool = Field(default=True, alias="AUTO_APPROVE_REVERSIBLE")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class GuardSettings(BaseSettings):
    """Repetition and goal-drift detector tuning."""

    repetition_enabled: bool = Field(default=True, alias="REPETITION_GUARD_ENABLED")
    repetition_window: int = Field(default=3, ge=2, le=20, alias="REPETITION_WINDOW")
    repetition_similarity: float = Field(default=0.9, gt=0.0, le=1.0, alias="REPETITION_SIMILARITY")

    drift_enabled: bool = Field(default=False, alias="DRIFT_GUARD_ENABLED")
    drift_window: int = Field(default=5, ge=1, le=50, alias="DRIFT_WINDOW")
    drift_similarity: float = Field(default=0.3, gt=0.0, le=1.0, alias="DRIFT_SIMILARITY")
    drift_max_tangent_steps: int = Field(default=3, ge=1, le=50, alias="DRIFT_MAX_TANGENT_STEPS")
    terminate_on_severe_drift: bool = Field(default=True, alias="TERMINATE_ON_SEVERE_DRIFT")
    severe_drift_grace_steps: int = Field(default=1, ge=0, le=10, alias="SEVERE_DRIFT_GRACE_STEPS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class OrchestratorSettings(BaseSettings):
    """Parallel orchestrator limits."""

    max_concurrent: int = Field(
        default=4,
        ge=1,
        le=64,
        validation_alias=AliasChoices("ORCHESTRATOR_MAX_CONCURRENT", "MAX_CONCURRENT"),
    )
    default_timeout: float = Field(default=30.0, gt=0, alias="ORCHESTRATOR_DEFAULT_TIMEOUT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class ObservabilitySettings(BaseSettings):
    """Logging configuration.

    - log_level: Package logger level name (default: INFO)
    - log_dir: Directory for timestamped session log files
    - log_prompt_max_length: Truncation length for prompts/observations in logs
    """

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: str = Field(default="logs", alias="LOG_DIR")
    log_prompt_max_length: int = Field(default=500, ge=100, le=5000, alias="LOG_PROMPT_MAX_LENGTH")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class Settings(BaseSettings):
    """Root application settings loaded from .env file.

    Hierarchical structure containing nested settings groups:
    - model: Chat model credentials (ModelSettings)
    - governance: Step budgets and delegation limits (GovernanceSettings)
    - guards: Repetition and drift detector tuning (GuardSettings)
    - orchestrator: Parallel execution limits (OrchestratorSettings)
    - observability: Logging (ObservabilitySettings)

    Use get_settings() to obtain a cached singleton instance.
    """

    environment: str = Field(default="dev", alias="APP_ENV")
    model: ModelSettings = Field(default_factory=ModelSettings)
    governance: GovernanceSettings = Field(default_factory=GovernanceSettings)
    guards: GuardSettings = Field(default_factory=GuardSettings)
    orchestrator: OrchestratorSettings = Field(default_factory=OrchestratorSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_assignment=True,
        case_sensitive=False,
        protected_namespaces=(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton Settings instance.

    Uses LRU cache to ensure only one Settings object is created per process.

    Returns:
        Settings: Cached application settings instance
    """
    return Settings()
