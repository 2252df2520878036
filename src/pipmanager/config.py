"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Constructor arguments
  2. Environment variables  (PIPMANAGER__MIRROR__SOURCE=tsinghua)
  3. pipmanager.yaml        (searched in cwd, then the platform config dir)
  4. Hardcoded defaults

The config file is optional; all fields have sensible defaults.
"""

from __future__ import annotations

import sys
from enum import StrEnum
from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_CONFIG_DIR = platformdirs.user_config_dir("pipmanager")


def _default_python_path() -> str:
    base = Path.home() / ".pipmanager" / "python"
    if sys.platform == "win32":
        return str(base / "Scripts" / "python.exe")
    return str(base / "bin" / "python3")


DEFAULT_PYTHON_PATH = _default_python_path()


def _find_config_file() -> str | None:
    """Return the path of the first pipmanager.yaml found, or None."""
    candidates = [
        Path("pipmanager.yaml"),
        Path(_DEFAULT_CONFIG_DIR) / "pipmanager.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class MirrorSource(StrEnum):
    """Well-known package index mirrors, by name."""

    PYPI = "pypi"
    TSINGHUA = "tsinghua"
    ALIYUN = "aliyun"
    DOUBAN = "douban"
    USTC = "ustc"

    @property
    def url(self) -> str:
        return _MIRROR_URLS[self]


_MIRROR_URLS: dict[MirrorSource, str] = {
    MirrorSource.PYPI: "https://pypi.org/simple",
    MirrorSource.TSINGHUA: "https://pypi.tuna.tsinghua.edu.cn/simple",
    MirrorSource.ALIYUN: "https://mirrors.aliyun.com/pypi/simple",
    MirrorSource.DOUBAN: "https://pypi.doubanio.com/simple",
    MirrorSource.USTC: "https://pypi.mirrors.ustc.edu.cn/simple",
}


class PipSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # None falls back to DEFAULT_PYTHON_PATH at call time
    python_path: str | None = None


class MirrorSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source: MirrorSource | None = None
    custom_url: str | None = None

    @field_validator("custom_url")
    @classmethod
    def validate_custom_url(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v:
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError("custom_url must use http or https scheme")
        return v

    def resolve_url(self) -> str | None:
        """The index URL to pass as ``-i``, or None to use pip's own default."""
        if self.custom_url:
            return self.custom_url
        if self.source is not None:
            return self.source.url
        return None


class SearchSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str = "https://pypi.org/search/"
    default_category: str = "Programming Language :: Python :: 3"
    timeout_seconds: float = 30.0


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "text"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: PIPMANAGER__SEARCH__TIMEOUT_SECONDS=10
        env_prefix="PIPMANAGER__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    pip: PipSettings = PipSettings()
    mirror: MirrorSettings = MirrorSettings()
    search: SearchSettings = SearchSettings()
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
