"""Configuration loading and validation."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from kinoreview.common.errors import ConfigError
from kinoreview.common.fs import read_yaml
from kinoreview.common.schema import validate_settings_config

SETTINGS_FILENAME = "settings.yml"
ENV_OVERRIDES = {
    "KINOPOISK_API_KEY": ("kinopoisk", "api_key"),
    "TMDB_API_KEY": ("tmdb", "api_key"),
    "REVIEW_SERVICE_TOKEN": ("reviews", "token"),
    "REVIEW_SERVICE_URL": ("reviews", "base_url"),
}


@dataclass(frozen=True)
class CatalogSettings:
    base_url: str
    api_key: str
    language: str | None = None


@dataclass(frozen=True)
class ReviewServiceSettings:
    base_url: str
    token: str | None = None


@dataclass(frozen=True)
class ResilienceSettings:
    timeout_seconds: float = 10.0
    max_retries: int = 3
    backoff_multiplier: float = 2.0
    max_backoff_seconds: float = 30.0
    breaker_failure_threshold: int = 5
    breaker_reset_seconds: float = 10.0


@dataclass(frozen=True)
class Settings:
    kinopoisk: CatalogSettings
    tmdb: CatalogSettings
    reviews: ReviewServiceSettings
    resilience: ResilienceSettings
    max_workers: int = 1


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> Any:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    if not overlay:
        return base
    if not isinstance(overlay, dict):
        raise ConfigError(f"Overlay config must be a mapping: {overlay_path}")
    return _deep_merge(base, overlay)


def _apply_env(cfg: dict, env: Mapping[str, str]) -> dict:
    out = _deep_merge(cfg, {})
    for var, (section, key) in ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            out[section] = {**out.get(section, {}), key: value}
    return out


def settings_from_config(cfg: dict) -> Settings:
    resilience = cfg["resilience"]
    converter = cfg.get("converter") or {}
    return Settings(
        kinopoisk=CatalogSettings(
            base_url=str(cfg["kinopoisk"]["base_url"]).rstrip("/"),
            api_key=str(cfg["kinopoisk"]["api_key"] or ""),
        ),
        tmdb=CatalogSettings(
            base_url=str(cfg["tmdb"]["base_url"]).rstrip("/"),
            api_key=str(cfg["tmdb"]["api_key"] or ""),
            language=cfg["tmdb"].get("language") or None,
        ),
        reviews=ReviewServiceSettings(
            base_url=str(cfg["reviews"]["base_url"]).rstrip("/"),
            token=cfg["reviews"].get("token") or None,
        ),
        resilience=ResilienceSettings(
            timeout_seconds=float(resilience["timeout_seconds"]),
            max_retries=int(resilience["max_retries"]),
            backoff_multiplier=float(resilience["backoff_multiplier"]),
            max_backoff_seconds=float(resilience["max_backoff_seconds"]),
            breaker_failure_threshold=int(resilience["breaker_failure_threshold"]),
            breaker_reset_seconds=float(resilience["breaker_reset_seconds"]),
        ),
        max_workers=int(converter.get("max_workers", 1)),
    )


def load_settings(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> Settings:
    overlay_path = overlay_config_dir / SETTINGS_FILENAME if overlay_config_dir is not None else None
    cfg = _load_yaml_with_overlay(config_dir / SETTINGS_FILENAME, overlay_path)
    cfg = validate_settings_config(cfg, allow_unknown=allow_unknown)
    cfg = _apply_env(cfg, os.environ if env is None else env)
    return settings_from_config(cfg)


def require_api_keys(settings: Settings) -> None:
    missing = []
    if not settings.kinopoisk.api_key:
        missing.append("kinopoisk.api_key (KINOPOISK_API_KEY)")
    if not settings.tmdb.api_key:
        missing.append("tmdb.api_key (TMDB_API_KEY)")
    if missing:
        raise ConfigError(f"Missing API keys: {', '.join(missing)}")
