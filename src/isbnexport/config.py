"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (ISBNEXPORT__LOGGING__LEVEL=DEBUG)
  2. isbnexport.yaml        (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; all fields have sensible defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("isbnexport")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "cache.db")

DEFAULT_RETRY_AFTER_SECONDS = 600


def _find_config_file() -> str | None:
    """Return the path of the first isbnexport.yaml found, or None."""
    candidates = [
        Path("isbnexport.yaml"),
        Path(platformdirs.user_config_dir("isbnexport")) / "isbnexport.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class FetcherSettings(BaseModel):
    user_agent: str = "ISBNExportTool/1.0 (Python; +https://github.com/ChrisJohnsen/ISBN-Export-Tool)"
    timeout_seconds: float = 30.0
    max_connections: int = 10
    default_retry_after_seconds: int = DEFAULT_RETRY_AFTER_SECONDS


class CacheSettings(BaseModel):
    enabled: bool = True
    db_path: str = _DEFAULT_DB_PATH


class ProviderSettings(BaseModel):
    enabled: list[str] = [
        "Open Library WorkEditions",
        "Open Library Search",
        "LibraryThing ThingISBN",
    ]
    max_concurrency: int = 10


class UpdatesSettings(BaseModel):
    url: str = ""
    ttl_hours: int = 24


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: ISBNEXPORT__CACHE__ENABLED=false
        env_prefix="ISBNEXPORT__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    fetcher: FetcherSettings = FetcherSettings()
    cache: CacheSettings = CacheSettings()
    providers: ProviderSettings = ProviderSettings()
    updates: UpdatesSettings = UpdatesSettings()
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
        )
