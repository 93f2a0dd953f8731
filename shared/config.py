"""
Shared configuration management for the form logic engine.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FormLogicSettings(BaseSettings):
    """Engine configuration, read from ``FORM_LOGIC_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FORM_LOGIC_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Formula evaluator limits
    max_formula_length: int = Field(default=1000, ge=1)
    max_formula_depth: int = Field(default=64, ge=1)

    # Rule management
    rule_id_prefix: str = Field(default="rule")

    # Observability
    enable_metrics: bool = Field(default=True)


@lru_cache(maxsize=1)
def get_settings() -> FormLogicSettings:
    """Get the process-wide settings instance."""
    return FormLogicSettings()
