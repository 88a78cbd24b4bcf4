"""Configuration loading and validation for jollybot."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, PrivateAttr, ValidationError, field_validator, model_validator

from jollybot.errors import ConfigError

DEFAULT_CHANNEL_NAME = "jollyposting"
DEFAULT_BACKFILL_CUTOFF = datetime(2025, 1, 1, tzinfo=timezone.utc)

# Environment variables consumed by Config.load, keyed by field.
ENV_GUILD_ID = "DISCORD_GUILD_ID"
ENV_CHANNEL_NAME = "DISCORD_CHANNEL_NAME"
ENV_TARGET_USER_IDS = "DISCORD_TARGET_USER_IDS"
ENV_TARGET_USER_ID = "DISCORD_TARGET_USER_ID"  # deprecated singular form
ENV_JOLLYSKULL_ID = "DISCORD_JOLLYSKULL_ID"
ENV_TOKEN = "DISCORD_TOKEN"


def parse_user_ids(value: str) -> list[str]:
    """Split a comma-separated list of user IDs, dropping blanks.

    Args:
        value: Raw value such as ``"123, 456,"``.

    Returns:
        Trimmed, non-empty IDs in their original order.
    """
    return [part.strip() for part in value.split(",") if part.strip()]


class BackfillConfig(BaseModel):
    """Historical backfill configuration."""

    enabled: bool = True
    cutoff: datetime = DEFAULT_BACKFILL_CUTOFF
    page_delay_seconds: float = Field(0.5, ge=0)

    @field_validator("cutoff")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Treat naive cutoffs as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class Config(BaseModel):
    """Root configuration for jollybot."""

    guild_id: str
    channel_name: str = DEFAULT_CHANNEL_NAME
    target_user_ids: list[str]
    jollyskull_id: str

    log_level: str = "INFO"
    log_json: bool = True

    backfill: BackfillConfig = Field(default_factory=BackfillConfig)

    _target_user_set: frozenset[str] = PrivateAttr(default_factory=frozenset)

    @field_validator("target_user_ids", mode="before")
    @classmethod
    def split_target_user_ids(cls, v: Any) -> Any:
        """Accept a comma-separated string as well as a list."""
        if isinstance(v, str):
            return parse_user_ids(v)
        if isinstance(v, (list, tuple)):
            return [str(item).strip() for item in v if str(item).strip()]
        return v

    @field_validator("guild_id", "jollyskull_id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Snowflakes written unquoted in YAML arrive as ints."""
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log_level is valid."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of: {allowed}")
        return v_upper

    @model_validator(mode="after")
    def validate_required(self) -> "Config":
        """Reject empty identifiers that pydantic would otherwise accept."""
        if not self.guild_id:
            raise ValueError("guild_id must not be empty")
        if not self.target_user_ids:
            raise ValueError("target_user_ids must contain at least one user ID")
        if not self.jollyskull_id:
            raise ValueError("jollyskull_id must not be empty")
        if not self.channel_name:
            self.channel_name = DEFAULT_CHANNEL_NAME
        return self

    def model_post_init(self, __context: Any) -> None:
        self._target_user_set = frozenset(self.target_user_ids)

    @property
    def discord_token(self) -> str | None:
        """Get Discord token from environment."""
        return os.environ.get(ENV_TOKEN) or None

    def is_target_user(self, user_id: str) -> bool:
        """Check whether a user ID is one of the configured targets."""
        return user_id in self._target_user_set

    @classmethod
    def load(cls, config_path: Path | str | None = None) -> "Config":
        """Load configuration from an optional YAML file with env var overlay.

        When ``config_path`` is None, ``config.yaml`` and ``config.yml`` in the
        working directory are tried; if neither exists only the environment
        is used.

        Args:
            config_path: Path to YAML configuration file.

        Returns:
            Validated Config instance.

        Raises:
            FileNotFoundError: If an explicit config file doesn't exist.
            ConfigError: If a required value is missing or invalid.
        """
        data: dict[str, Any] = {}

        if config_path is not None:
            config_path = Path(config_path)
            if not config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            data = _read_yaml(config_path)
        else:
            for path in [Path("config.yaml"), Path("config.yml")]:
                if path.exists():
                    data = _read_yaml(path)
                    break

        _apply_env(data)

        if not data.get("guild_id"):
            raise ConfigError(f"{ENV_GUILD_ID} is required")
        if not data.get("target_user_ids"):
            raise ConfigError(f"{ENV_TARGET_USER_IDS} is required")
        if not data.get("jollyskull_id"):
            raise ConfigError(f"{ENV_JOLLYSKULL_ID} is required")

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(str(e)) from e


def _read_yaml(path: Path) -> dict[str, Any]:
    with open(path) as f:
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"Configuration file must contain a mapping: {path}")
    return loaded


def _apply_env(data: dict[str, Any]) -> None:
    """Overlay environment variables onto raw config data in place."""
    if os.environ.get(ENV_GUILD_ID):
        data["guild_id"] = os.environ[ENV_GUILD_ID]
    if os.environ.get(ENV_CHANNEL_NAME):
        data["channel_name"] = os.environ[ENV_CHANNEL_NAME]
    if os.environ.get(ENV_JOLLYSKULL_ID):
        data["jollyskull_id"] = os.environ[ENV_JOLLYSKULL_ID]

    # Plural wins over the singular fallback
    target_ids = os.environ.get(ENV_TARGET_USER_IDS) or os.environ.get(ENV_TARGET_USER_ID)
    if target_ids:
        parsed = parse_user_ids(target_ids)
        if parsed:
            data["target_user_ids"] = parsed

    if "JOLLYBOT_LOG_LEVEL" in os.environ:
        data["log_level"] = os.environ["JOLLYBOT_LOG_LEVEL"]
    if "JOLLYBOT_LOG_JSON" in os.environ:
        data["log_json"] = os.environ["JOLLYBOT_LOG_JSON"].lower() == "true"
    if "JOLLYBOT_BACKFILL_CUTOFF" in os.environ:
        backfill = data.setdefault("backfill", {}) or {}
        backfill["cutoff"] = os.environ["JOLLYBOT_BACKFILL_CUTOFF"]
        data["backfill"] = backfill
