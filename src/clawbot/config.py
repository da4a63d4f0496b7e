"""Centralized settings and logging setup for ClawBot."""

import logging
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

SEVEN_DAYS = 60 * 60 * 24 * 7


class Settings(BaseSettings):
    """Runtime configuration, read from ``CLAWBOT_*`` environment variables and ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="CLAWBOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    telegram_token: str = ""
    openai_api_key: Optional[str] = None
    github_token: str = ""
    webhook_secret: str = ""

    model: str = "gpt-4o"
    temperature: float = 0.8

    max_turns: int = Field(3, ge=1)
    history_cap: int = Field(10, ge=2)
    history_ttl_seconds: int = Field(SEVEN_DAYS, ge=1)

    fetch_timeout: float = Field(15.0, gt=0)
    browser_timeout: float = Field(45.0, gt=0)

    store_backend: Literal["memory", "file", "sqlite"] = "memory"
    store_path: str = "clawbot_data"

    default_repo: str = "Codesait/clawbot-telegram"
    tool_workers: int = Field(1, ge=1)

    log_level: str = "INFO"

    @field_validator("default_repo")
    @classmethod
    def _repo_has_owner(cls, value: str) -> str:
        if value.count("/") != 1 or not all(value.split("/")):
            raise ValueError("default_repo must look like 'owner/repo'")
        return value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.upper()
        if not isinstance(logging.getLevelName(value), int):
            raise ValueError(f"unknown log level: {value}")
        return value


def configure_logging(level: str = "INFO") -> None:
    """Installs a single stream handler on the root logger.

    Calling it again only updates the level, so it is safe from both the CLI
    and the webhook factory.
    """
    root = logging.getLogger()
    root.setLevel(level)
    if not any(getattr(h, "_clawbot", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._clawbot = True
        root.addHandler(handler)
    # httpx logs every request line at INFO, including bot tokens in URLs
    logging.getLogger("httpx").setLevel(logging.WARNING)
