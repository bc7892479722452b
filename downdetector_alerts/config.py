"""Configuration loading for the Downdetector alert job."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, model_validator

from downdetector_alerts.telegram import DEFAULT_API_BASE, TelegramConfig


class ConfigError(RuntimeError):
    """Raised for configuration problems that must abort the run."""


class ServiceConfig(BaseModel):
    """One monitored service."""

    model_config = ConfigDict(frozen=True)

    slug: str = Field(min_length=1, description="Downdetector status page identifier")
    name: str = Field(description="Display name used in alerts")
    url: str = Field(description="Link included in alerts")


class RunConfig(BaseModel):
    """Settings for a single polling pass."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    threshold: float = Field(description="Report count above which an alert fires")
    cooldown_minutes: float = Field(
        validation_alias=AliasChoices("cooldownMinutes", "cooldown_minutes"),
        ge=0,
        description="Minimum spacing between alerts for the same service",
    )
    country: str = Field(min_length=1, description="Region code passed to Downdetector")
    services: list[ServiceConfig] = Field(description="Services in polling order")
    notify_errors: bool = Field(
        default=False,
        validation_alias=AliasChoices("notifyErrors", "notify_errors"),
        description="Also send per-service errors through the notifier",
    )

    @model_validator(mode="after")
    def _unique_slugs(self) -> "RunConfig":
        seen: set[str] = set()
        for svc in self.services:
            if svc.slug in seen:
                raise ValueError(f"duplicate service slug {svc.slug!r}")
            seen.add(svc.slug)
        return self


def load_run_config(path: Path) -> RunConfig:
    """Load the run config from YAML or JSON. Any problem is fatal."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"Missing {path}") from None
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Unable to read {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping")

    try:
        return RunConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config {path}: {e}") from e


def load_telegram_config(environ: Mapping[str, str] | None = None) -> TelegramConfig:
    env = os.environ if environ is None else environ
    bot_token = (env.get("TELEGRAM_BOT_TOKEN") or "").strip()
    chat_id = (env.get("TELEGRAM_CHAT_ID") or "").strip()
    if not bot_token or not chat_id:
        raise ConfigError("Missing TELEGRAM_BOT_TOKEN or TELEGRAM_CHAT_ID env vars")
    api_base = (env.get("TELEGRAM_API_BASE") or "").strip() or DEFAULT_API_BASE
    return TelegramConfig(bot_token=bot_token, chat_id=chat_id, api_base=api_base)
