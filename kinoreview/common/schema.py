"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from kinoreview.common.errors import ConfigError

TOP_LEVEL_KEYS = {"kinopoisk", "tmdb", "reviews", "resilience", "converter"}
RESILIENCE_KEYS = {
    "timeout_seconds",
    "max_retries",
    "backoff_multiplier",
    "max_backoff_seconds",
    "breaker_failure_threshold",
    "breaker_reset_seconds",
}


def _assert_mapping(obj: object, ctx: str) -> dict:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    return obj


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_positive_number(obj: dict, key: str, ctx: str, *, allow_zero: bool = False) -> None:
    value = obj[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{ctx}.{key} must be a number")
    if value < 0 or (value == 0 and not allow_zero):
        raise ConfigError(f"{ctx}.{key} must be {'non-negative' if allow_zero else 'positive'}")


def validate_settings_config(cfg: object, *, allow_unknown: bool = False) -> dict:
    cfg = _assert_mapping(cfg, "settings")
    _assert_required_keys(cfg, TOP_LEVEL_KEYS - {"converter"}, "settings")
    _assert_no_unknown_keys(cfg, TOP_LEVEL_KEYS, "settings", allow_unknown)

    for section in ("kinopoisk", "tmdb"):
        _assert_mapping(cfg[section], section)
        _assert_required_keys(cfg[section], {"base_url", "api_key"}, section)
        _assert_no_unknown_keys(cfg[section], {"base_url", "api_key", "language"}, section, allow_unknown)

    _assert_mapping(cfg["reviews"], "reviews")
    _assert_required_keys(cfg["reviews"], {"base_url"}, "reviews")
    _assert_no_unknown_keys(cfg["reviews"], {"base_url", "token"}, "reviews", allow_unknown)

    resilience = _assert_mapping(cfg["resilience"], "resilience")
    _assert_required_keys(resilience, RESILIENCE_KEYS, "resilience")
    _assert_no_unknown_keys(resilience, RESILIENCE_KEYS, "resilience", allow_unknown)
    for key in RESILIENCE_KEYS:
        _assert_positive_number(resilience, key, "resilience", allow_zero=key == "max_retries")

    converter = _assert_mapping(cfg.get("converter") or {"max_workers": 1}, "converter")
    _assert_no_unknown_keys(converter, {"max_workers"}, "converter", allow_unknown)
    if "max_workers" in converter:
        _assert_positive_number(converter, "max_workers", "converter")

    return cfg
