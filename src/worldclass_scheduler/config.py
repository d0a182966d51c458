"""Configuration objects and helpers for the scheduler."""

from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError
from .models import Interest

DEFAULT_CONFIG_PATH = "config.yaml"
CONFIG_PATH_ENV = "WORLDCLASS_CONFIG"
DEFAULT_BASE_URL = "https://members.worldclass.ro"
DEFAULT_TIMEZONE = "Europe/Bucharest"


class Credentials(BaseModel):
    """Member portal login."""

    email: str = Field(min_length=1)
    password: SecretStr

    @field_validator("password")
    @classmethod
    def password_not_empty(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value():
            raise ValueError("credentials.password must be set")
        return value


class Club(BaseModel):
    """A club whose schedule should be scraped."""

    id: str
    name: str

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: object) -> object:
        # YAML reads unquoted numeric ids as ints.
        return str(value) if isinstance(value, int) else value


class InterestEntry(BaseModel):
    """Interest as written in the configuration file, keyed by club."""

    day: str = ""
    day_english: str = ""
    time: str = ""
    title: str = ""

    def to_interest(self, club: str) -> Interest:
        return Interest(
            club=club,
            day=self.day,
            time=self.time,
            title=self.title,
            day_english=self.day_english,
        )


class AlertingConfig(BaseModel):
    """Optional alert webhook."""

    webhook_url: Optional[str] = None
    timeout_seconds: float = 5.0


class SchedulingConfig(BaseModel):
    """Timings tuned to the portal's booking window.

    The portal opens reservations ``lead_time`` before class start. The loop
    wakes ``early_buffer`` earlier than that and gives up ``grace_period``
    after the class has started.
    """

    lead_time: timedelta = timedelta(hours=26)
    early_buffer: timedelta = timedelta(minutes=1)
    retry_delay: timedelta = timedelta(seconds=10)
    grace_period: timedelta = timedelta(minutes=1)
    idle_delay: timedelta = timedelta(hours=1)
    request_timeout: timedelta = timedelta(seconds=30)


class Settings(BaseSettings):
    """Runtime configuration sourced from the YAML file and the environment."""

    base_url: str = DEFAULT_BASE_URL
    timezone: str = DEFAULT_TIMEZONE
    credentials: Credentials
    clubs: List[Club] = Field(min_length=1)
    interests: Dict[str, List[InterestEntry]] = Field(default_factory=dict)
    alerting: AlertingConfig = Field(default_factory=AlertingConfig)
    scheduling: SchedulingConfig = Field(default_factory=SchedulingConfig)

    model_config = SettingsConfigDict(
        env_prefix="WORLDCLASS_",
        env_nested_delimiter="__",
        env_file=(".env",),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("base_url", mode="before")
    @classmethod
    def default_base_url(cls, value: Optional[str]) -> str:
        """Blank values fall back to the public member portal."""
        value = (value or "").strip()
        return value.rstrip("/") if value else DEFAULT_BASE_URL

    @field_validator("timezone", mode="before")
    @classmethod
    def default_timezone(cls, value: Optional[str]) -> str:
        value = (value or "").strip()
        return value or DEFAULT_TIMEZONE

    @field_validator("interests", mode="before")
    @classmethod
    def empty_clubs(cls, value: Optional[dict]) -> dict:
        # A club key with no list items under it parses as None.
        if value is None:
            return {}
        if isinstance(value, dict):
            return {club: entries or [] for club, entries in value.items()}
        return value

    def interest_list(self) -> List[Interest]:
        """Flatten interests into a list ordered by club name."""
        return [
            entry.to_interest(club)
            for club in sorted(self.interests)
            for entry in self.interests[club]
        ]

    def interests_by_club(self) -> Dict[str, List[Interest]]:
        return {club: [entry.to_interest(club) for entry in entries] for club, entries in self.interests.items()}


def resolve_config_path(path: Optional[Union[str, Path]] = None) -> Path:
    """Pick the config path from the argument, the environment or the default."""
    if path:
        return Path(path)
    return Path(os.getenv(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """Read and validate the YAML configuration file."""
    config_path = resolve_config_path(path)
    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"open config {config_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"parse config {config_path}: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"config {config_path} must be a mapping at the top level")

    try:
        return Settings(**raw)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid config {config_path}: {exc}") from exc
