# contextkeeper/config/settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, model_validator
import logging
from typing import Dict

from contextkeeper.exceptions.config import ConfigError
from contextkeeper.config.token_limits import (
    DEFAULT_TOKEN_LIMIT,
    DEFAULT_TOKEN_LIMITS,
    resolve_token_limit,
)

logger = logging.getLogger("Settings")


class ContextSettings(BaseSettings):
    # === Budget ===
    model: str = "gemini-2.0-flash"
    fixed_token_threshold: int = 4000
    percentage_threshold: float = 0.8
    projection_growth_factor: float = 1.2
    projection_threshold: float = 0.8

    # === Knowledge ===
    max_knowledge_entries: int = 100
    auto_extract_knowledge: bool = True

    # === Reduction ===
    aggressive_reduction: bool = False

    # === Planning ===
    plan_confidence_gate: float = 0.6
    top_k_tools: int = 3

    # === Runtime ===
    monitor_interval: float = 5.0
    log_level: str = "INFO"
    ollama_host: str = "http://localhost:11434"
    reply_model: str = "qwen3:4b"

    token_limits: Dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_TOKEN_LIMITS)
    )
    default_token_limit: int = DEFAULT_TOKEN_LIMIT

    # === Pydantic V2 Configuration ===
    model_config = SettingsConfigDict(
        env_prefix="CONTEXTKEEPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        protected_namespaces=(),
    )

    # === Model Validator ===

    @model_validator(mode="after")
    def validate_and_compute(self) -> "ContextSettings":
        """Validate ranges and normalise derived fields."""

        # 1. Ratios live in [0, 1]
        for name in ("percentage_threshold", "projection_threshold", "plan_confidence_gate"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(
                    f"{name} must be within [0, 1], got {value}",
                    field_name=name,
                    invalid_value=value,
                )

        # 2. Counts must be positive
        for name in ("fixed_token_threshold", "max_knowledge_entries", "top_k_tools"):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigError(
                    f"{name} must be positive, got {value}",
                    field_name=name,
                    invalid_value=value,
                )

        if self.projection_growth_factor < 1.0:
            raise ConfigError(
                "projection_growth_factor must be >= 1.0",
                field_name="projection_growth_factor",
                invalid_value=self.projection_growth_factor,
            )

        if self.monitor_interval <= 0:
            raise ConfigError(
                "monitor_interval must be positive",
                field_name="monitor_interval",
                invalid_value=self.monitor_interval,
            )

        # 3. Validate log level
        if self.log_level.upper() not in logging._nameToLevel:
            raise ConfigError(
                f"Invalid log level: {self.log_level}",
                field_name="log_level",
                invalid_value=self.log_level,
            )
        self.log_level = self.log_level.upper()

        return self

    def resolve_token_limit(self, model: str = None) -> int:
        """Input token limit for ``model`` (defaults to the configured model)."""
        return resolve_token_limit(
            model or self.model, self.token_limits, self.default_token_limit
        )
