"""Configuration loading for Pagemeta."""

from __future__ import annotations

import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

DEFAULT_CONFIG_PATH = Path("config/default.yaml")
LOCAL_CONFIG_PATH = Path("config/local.yaml")


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra="forbid")

    path: Path | None = None
    level: str = Field(default="info")

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        if not isinstance(value, str):
            raise TypeError("Logging level must be a string.")
        normalized = value.strip().lower()
        if normalized not in {"debug", "info", "warn", "warning", "error", "critical"}:
            raise ValueError(f"Unsupported logging level: {value!r}")
        return normalized


class HeadSettings(BaseModel):
    """Application-wide head configuration rendered for every page."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    title: str | None = None
    title_template: str | None = Field(default=None, alias="titleTemplate")
    html_attrs: dict[str, Any] = Field(default_factory=dict, alias="htmlAttrs")
    body_attrs: dict[str, Any] = Field(default_factory=dict, alias="bodyAttrs")
    meta: list[Any] = Field(default_factory=list)
    link: list[Any] = Field(default_factory=list)
    style: list[Any] = Field(default_factory=list)
    script: list[Any] = Field(default_factory=list)
    noscript: list[Any] = Field(default_factory=list)

    @field_validator("html_attrs", "body_attrs", mode="before")
    @classmethod
    def _normalize_attrs(cls, value: Any) -> dict[str, Any]:
        if value is None:
            return {}
        return value

    @field_validator("meta", "link", "style", "script", "noscript", mode="before")
    @classmethod
    def _normalize_tags(cls, value: Any) -> list[Any]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise TypeError("Head tag groups must be lists of mappings.")
        return value


class RenderSettings(BaseModel):
    """Resource hint options."""

    model_config = ConfigDict(extra="forbid")

    resource_hints: bool = True
    should_preload: str | None = None
    should_prefetch: str | None = None

    @field_validator("should_preload", "should_prefetch", mode="before")
    @classmethod
    def _normalize_predicate(cls, value: Any) -> str | None:
        if value is None:
            return None
        if not isinstance(value, str):
            raise TypeError("Hint predicates must be given as 'module:function' strings.")
        cleaned = value.strip()
        return cleaned or None


class ManifestSettings(BaseModel):
    """Location of the client asset manifest and fetch policy."""

    model_config = ConfigDict(extra="forbid")

    path: Path | None = None
    url: str | None = None
    timeout_seconds: float = Field(default=10.0, ge=0.1)
    max_retries: int = Field(default=3, ge=0)
    backoff_min_seconds: float = Field(default=0.5, ge=0.0)
    backoff_max_seconds: float = Field(default=10.0, ge=0.0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)

    @field_validator("url", mode="before")
    @classmethod
    def _normalize_url(cls, value: Any) -> str | None:
        if value is None:
            return None
        if not isinstance(value, str):
            raise TypeError("Manifest URL must be a string.")
        cleaned = value.strip()
        if cleaned and not cleaned.startswith(("http://", "https://")):
            raise ValueError(f"Manifest URL must use http or https: {value!r}")
        return cleaned or None

    @model_validator(mode="after")
    def _validate_location(self) -> ManifestSettings:
        if self.path is not None and self.url is not None:
            raise ValueError("Configure either manifest.path or manifest.url, not both.")
        return self


class CacheSettings(BaseModel):
    """Fragment cache options."""

    model_config = ConfigDict(extra="forbid")

    capacity: int | None = None
    normalize_keys: bool = False
    render_timeout_seconds: float | None = Field(default=None, ge=0.1)


class ConfigModel(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    head: HeadSettings = Field(default_factory=HeadSettings)
    render: RenderSettings = Field(default_factory=RenderSettings)
    manifest: ManifestSettings = Field(default_factory=ManifestSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)


@dataclass(slots=True)
class Config:
    """Validated configuration with convenience helpers."""

    model: ConfigModel
    raw: Mapping[str, Any] = field(repr=False)
    loaded_from: tuple[str, ...] = field(default_factory=tuple, repr=False)

    @property
    def logging(self) -> LoggingSettings:
        """Return logging settings."""

        return self.model.logging

    @property
    def head(self) -> HeadSettings:
        """Return the application head configuration."""

        return self.model.head

    @property
    def render(self) -> RenderSettings:
        """Return resource hint options."""

        return self.model.render

    @property
    def manifest(self) -> ManifestSettings:
        """Return manifest location settings."""

        return self.model.manifest

    @property
    def cache(self) -> CacheSettings:
        """Return fragment cache options."""

        return self.model.cache

    def model_dump(self) -> Mapping[str, Any]:
        """Expose the parsed configuration as a mapping."""

        return self.model.model_dump(mode="json", by_alias=True)


def load_config(path: Path | None = None) -> Config:
    """Load configuration from defaults/local overrides, or from an explicit config document."""

    merged: dict[str, Any] = {}
    loaded_from: list[str] = []

    if path is not None:
        override_path = _resolve_path(path)
        if override_path is None or not override_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        merged = _merge_dicts(merged, _read_yaml(override_path))
        loaded_from.append(str(override_path))
    else:
        default_candidate = _resolve_path(DEFAULT_CONFIG_PATH)
        packaged_default = _resolve_packaged_path(DEFAULT_CONFIG_PATH)
        if default_candidate and default_candidate.exists():
            merged = _merge_dicts(merged, _read_yaml(default_candidate))
            loaded_from.append(str(default_candidate))
        elif packaged_default and packaged_default.exists():
            merged = _merge_dicts(merged, _read_yaml(packaged_default))
            loaded_from.append(str(packaged_default))
        else:
            packaged_payload = _read_packaged_yaml("pagemeta.config", "default.yaml")
            if packaged_payload is not None:
                merged = _merge_dicts(merged, packaged_payload)
                loaded_from.append("pagemeta.config:default.yaml")

        local_candidate = _resolve_path(LOCAL_CONFIG_PATH)
        if local_candidate and local_candidate.exists():
            merged = _merge_dicts(merged, _read_yaml(local_candidate))
            loaded_from.append(str(local_candidate))

    if not merged:
        raise FileNotFoundError("No configuration data could be loaded.")

    try:
        model = ConfigModel.model_validate(merged)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc

    return Config(model=model, raw=merged, loaded_from=tuple(loaded_from))


def _resolve_path(path: Path) -> Path | None:
    """Resolve configuration paths relative to the current working directory."""

    if path is None:
        return None
    return path if path.is_absolute() else Path.cwd() / path


def _resolve_packaged_path(path: Path) -> Path | None:
    """Resolve paths embedded in packaged binaries (e.g., PyInstaller)."""

    base = getattr(sys, "_MEIPASS", None)
    if not base:
        return None
    return Path(base) / path


def _read_yaml(path: Path) -> dict[str, Any]:
    """Read a YAML file into a dictionary."""

    content = path.read_text(encoding="utf-8")
    data = yaml.safe_load(content) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must define a mapping at the top level.")
    return data


def _read_packaged_yaml(package: str, name: str) -> dict[str, Any] | None:
    """Read YAML embedded in a Python package via importlib.resources."""

    try:
        content = resources.files(package).joinpath(name).read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    data = yaml.safe_load(content) or {}
    if not isinstance(data, dict):
        raise ValueError(
            f"Packaged configuration {package}:{name} must define a mapping at the top level."
        )
    return data


def _merge_dicts(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge two dictionaries, with override values taking precedence.

    Lists (such as head tag groups) are replaced wholesale rather than concatenated.
    """

    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_dicts(result[key], value)
        else:
            result[key] = value
    return result
