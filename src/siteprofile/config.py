"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (SITEPROFILE__LLM__MODEL=gpt-4o)
  2. siteprofile.yaml       (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; all fields have sensible defaults. The analysis
core only ever reads a constructed Settings object.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
    "--window-size=1920,1080",
]

_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


def _find_config_file() -> str | None:
    """Return the path of the first siteprofile.yaml found, or None."""
    candidates = [
        Path("siteprofile.yaml"),
        Path(platformdirs.user_config_dir("siteprofile")) / "siteprofile.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class SecuritySettings(BaseModel):
    allowed_domains: list[str] = ["*.nl", "*.com", "*.be"]
    timeout_ms: int = Field(default=30_000, gt=0)
    block_private_hosts: bool = True


class RateLimitSettings(BaseModel):
    enabled: bool = True
    analyses_per_hour: int = Field(default=10, ge=1)
    analyses_per_day: int = Field(default=25, ge=1)


class LLMSettings(BaseModel):
    api_key: SecretStr | None = None
    organization_id: str | None = None
    model: str = "gpt-4o-mini"
    base_url: str | None = None
    request_timeout_seconds: float = Field(default=60.0, gt=0)
    # When true the confidence rubric is computed locally instead of trusting
    # the score the model reports.
    local_confidence_scoring: bool = False


class ScraperSettings(BaseModel):
    headless: bool = True
    launch_args: list[str] = _DEFAULT_LAUNCH_ARGS
    user_agent: str = _DEFAULT_USER_AGENT
    viewport_width: int = Field(default=1920, gt=0)
    viewport_height: int = Field(default=1080, gt=0)
    settle_delay_ms: int = Field(default=2_000, ge=0)
    retry_delay_ms: int = Field(default=1_000, ge=0)
    max_retries: int = Field(default=3, ge=1)


class CacheSettings(BaseModel):
    max_size_mb: float = Field(default=100, gt=0)
    max_entries: int = Field(default=1_000, ge=1)
    cleanup_interval_minutes: int = Field(default=15, ge=0)
    scrape_ttl_hours: float = Field(default=2, gt=0)
    analysis_ttl_hours: float = Field(default=6, gt=0)
    final_ttl_hours: float = Field(default=24, gt=0)


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: SITEPROFILE__CACHE__MAX_ENTRIES=500
        env_prefix="SITEPROFILE__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    security: SecuritySettings = SecuritySettings()
    rate_limit: RateLimitSettings = RateLimitSettings()
    llm: LLMSettings = LLMSettings()
    scraper: ScraperSettings = ScraperSettings()
    cache: CacheSettings = CacheSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
