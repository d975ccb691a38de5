# config.py
"""Configuration settings for the QuantumGuard key exchange narrator.
Uses Pydantic BaseSettings for automatic environment variable loading.
"""

from __future__ import annotations

import structlog
from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

logger = structlog.get_logger()


class QuantumGuardSettings(BaseSettings):
    """Full configuration for the QuantumGuard demo."""

    # Generation service
    GEMINI_API_KEY: str = Field(
        "", validation_alias=AliasChoices("GEMINI_API_KEY", "API_KEY")
    )
    GEMINI_API_BASE: str = "https://generativelanguage.googleapis.com/v1beta"
    GENERATION_MODEL: str = "gemini-2.5-flash"
    HTTPX_TIMEOUT: float = 120.0

    # Simulation defaults
    PHOTON_COUNT: int = Field(20, ge=1)

    # Logging & UI
    LOG_LEVEL_STR: str = Field("INFO", alias="QG_LOG_LEVEL")
    LOG_FORMAT: str = (
        "%(asctime)s - %(levelname)s - [%(name)s:%(funcName)s:%(lineno)d] - %(message)s"
    )
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    LOG_FILE: str | None = None
    ENABLE_RICH_PROGRESS: bool = True

    model_config = SettingsConfigDict(
        env_prefix="", env_file=".env", extra="ignore", populate_by_name=True
    )


settings = QuantumGuardSettings()

if not settings.GEMINI_API_KEY:
    logger.warning(
        "GEMINI_API_KEY is not set. Key exchange requests will fail until it is provided."
    )
