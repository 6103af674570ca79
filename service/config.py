"""Detector configuration using pydantic-settings with env var and YAML file support.

Env vars (UDD_ prefix) take precedence over YAML config file values.
Every setting has a default; invalid values cause an immediate exit.
"""

from __future__ import annotations

import logging
import sys
from functools import lru_cache

import pydantic
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from registry.store import DEFAULT_REGISTRY_KEY
from service import __version__

logger = logging.getLogger(__name__)

_YAML_CONFIG_PATH = "/config/detector.yml"
_LOG_LEVELS = ("debug", "info", "warning", "error")

try:
    from pydantic_settings import YamlConfigSettingsSource as _YamlSource

    _yaml_available = True
except ImportError:
    _yaml_available = False


class DetectorSettings(BaseSettings):
    """User delete detector configuration.

    Precedence (highest to lowest):
    0. Keyword arguments (embedding apps, tests)
    1. UDD_-prefixed environment variables
    2. YAML config file at /config/detector.yml
    3. Defaults defined below
    """

    model_config = SettingsConfigDict(
        env_prefix="UDD_",
        yaml_file=_YAML_CONFIG_PATH,
        yaml_file_encoding="utf-8",
    )

    # Empty = in-memory store, no run lease (single-instance mode)
    redis_url: str = ""
    registry_key: str = DEFAULT_REGISTRY_KEY

    staleness_window_seconds: float = 86400.0
    time_budget_seconds: float = 15.0

    run_lease_enabled: bool = True
    run_lease_ttl_seconds: float = 30.0  # host scheduler's invocation ceiling

    identity_base_url: str = "https://www.reddit.com"
    identity_user_agent: str = f"user-delete-detector/{__version__}"
    identity_timeout_seconds: float = 10.0

    # Default cleanup callback targets, populated from YAML or JSON env values
    cleanup_sorted_sets: list[str] = []
    cleanup_key_templates: list[str] = []

    log_level: str = "info"
    service_port: int = 9090

    @field_validator(
        "staleness_window_seconds",
        "time_budget_seconds",
        "run_lease_ttl_seconds",
        "identity_timeout_seconds",
    )
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than 0")
        return value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        if value.lower() not in _LOG_LEVELS:
            raise ValueError(f"must be one of {', '.join(_LOG_LEVELS)}")
        return value.lower()

    @field_validator("cleanup_key_templates")
    @classmethod
    def _templates_have_placeholder(cls, value: list[str]) -> list[str]:
        for template in value:
            if "{key}" not in template:
                raise ValueError(f"template {template!r} must contain '{{key}}'")
        return value

    @model_validator(mode="after")
    def _lease_outlives_budget(self) -> "DetectorSettings":
        # The budget is checked between candidates, so the last lookup may
        # start just before it elapses. The cleanup callback is not bounded.
        if self.run_lease_ttl_seconds < self.time_budget_seconds + self.identity_timeout_seconds:
            raise ValueError(
                "run_lease_ttl_seconds must be >= time_budget_seconds + identity_timeout_seconds"
            )
        return self

    @property
    def staleness_window_ms(self) -> int:
        return int(self.staleness_window_seconds * 1000)

    @property
    def time_budget_ms(self) -> int:
        return int(self.time_budget_seconds * 1000)

    @property
    def run_lease_ttl_ms(self) -> int:
        return int(self.run_lease_ttl_seconds * 1000)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Return sources in priority order: init > env > YAML > defaults."""
        if _yaml_available:
            try:
                yaml_source = _YamlSource(settings_cls)
                return (init_settings, env_settings, yaml_source)
            except Exception:
                # YAML source failed to initialise; fall back to env-only
                logger.debug("YAML config source unavailable; using env vars only")
        return (init_settings, env_settings)


@lru_cache(maxsize=1)
def get_settings() -> DetectorSettings:
    """Return the cached DetectorSettings instance.

    Exits with a helpful error message if any setting is invalid.
    """
    try:
        return DetectorSettings()
    except pydantic.ValidationError as exc:
        lines = []
        for error in exc.errors():
            loc = error.get("loc", ())
            name = f"UDD_{str(loc[0]).upper()}" if loc else "configuration"
            lines.append(f"  {name}: {error.get('msg')}")
        print(
            "\nInvalid configuration:\n"
            + "\n".join(lines)
            + f"\nFix these environment variables or the values in {_YAML_CONFIG_PATH}\n",
            file=sys.stderr,
        )
        sys.exit(1)
