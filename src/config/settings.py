"""Environment configuration and validation.

This module defines strongly-typed application settings loaded from environment variables
(optionally via a local `.env` file).

The interpreter API key is deliberately optional at startup: its absence is reported per request as
an upstream failure, so the service can still boot (e.g. with the offline rules backend).
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

InterpreterBackend = Literal["llm", "rules"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    interpreter_backend: InterpreterBackend = Field(default="llm", alias="INTERPRETER_BACKEND")
    interpreter_timeout_s: float = Field(default=20.0, alias="INTERPRETER_TIMEOUT_S")

    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    llm_model: str = Field(default="gpt-4o", alias="LLM_MODEL")
    llm_model_lite: str = Field(default="gpt-4o-mini", alias="LLM_MODEL_LITE")
    llm_api_base: str = Field(default="https://api.openai.com/v1", alias="LLM_API_BASE")
    llm_temperature: float = Field(default=0.2, alias="LLM_TEMPERATURE")

    cors_allow_origin: str = Field(default="*", alias="CORS_ALLOW_ORIGIN")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_raw_responses: bool = Field(default=False, alias="LOG_RAW_RESPONSES")

    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")

    @field_validator("interpreter_timeout_s")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        """Every interpreter call must be bounded."""

        if value <= 0:
            raise ValueError("INTERPRETER_TIMEOUT_S must be > 0")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown LOG_LEVEL: {value}")
        return level


def load_settings() -> Settings:
    """Load and validate settings from environment variables.

    Raises:
        RuntimeError: If the environment configuration is invalid.
    """

    try:
        return Settings()
    except ValidationError as exc:
        raise RuntimeError(f"Invalid environment configuration: {exc}") from exc
