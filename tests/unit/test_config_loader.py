from pathlib import Path

import pytest

from kinoreview.common.config_loader import load_settings, require_api_keys
from kinoreview.common.errors import ConfigError

BASE_SETTINGS = """kinopoisk:
  base_url: "https://kp.test/"
  api_key: ""
tmdb:
  base_url: "https://tmdb.test/3"
  api_key: ""
  language: "ru-RU"
reviews:
  base_url: "http://reviews.test"
resilience:
  timeout_seconds: 10
  max_retries: 3
  backoff_multiplier: 2
  max_backoff_seconds: 30
  breaker_failure_threshold: 5
  breaker_reset_seconds: 10
"""


def _write_base(tmp_path: Path, text: str = BASE_SETTINGS) -> Path:
    base = tmp_path / "base"
    base.mkdir()
    (base / "settings.yml").write_text(text, encoding="utf-8")
    return base


def test_load_settings_from_repo_config_dir():
    settings = load_settings(Path("config"), env={})

    assert settings.kinopoisk.base_url == "https://kinopoiskapiunofficial.tech"
    assert settings.resilience.max_retries == 3
    assert settings.resilience.breaker_failure_threshold == 5
    assert settings.resilience.breaker_reset_seconds == 10
    assert settings.resilience.timeout_seconds == 10
    assert settings.max_workers == 1


def test_load_settings_strips_urls_and_reads_language(tmp_path: Path):
    settings = load_settings(_write_base(tmp_path), env={})

    assert settings.kinopoisk.base_url == "https://kp.test"
    assert settings.tmdb.language == "ru-RU"
    assert settings.reviews.token is None


def test_load_settings_applies_overlay_values(tmp_path: Path):
    base = _write_base(tmp_path)
    overlay = tmp_path / "overlay"
    overlay.mkdir()
    (overlay / "settings.yml").write_text(
        """resilience:
  max_retries: 1
converter:
  max_workers: 4
""",
        encoding="utf-8",
    )

    settings = load_settings(base, overlay_config_dir=overlay, env={})

    assert settings.resilience.max_retries == 1
    assert settings.resilience.timeout_seconds == 10
    assert settings.max_workers == 4


def test_load_settings_ignores_empty_overlay_file(tmp_path: Path):
    base = _write_base(tmp_path)
    overlay = tmp_path / "overlay"
    overlay.mkdir()
    (overlay / "settings.yml").write_text("", encoding="utf-8")

    settings = load_settings(base, overlay_config_dir=overlay, env={})

    assert settings.resilience.max_retries == 3


def test_load_settings_rejects_non_mapping_overlay(tmp_path: Path):
    base = _write_base(tmp_path)
    overlay = tmp_path / "overlay"
    overlay.mkdir()
    (overlay / "settings.yml").write_text("- not\n- a\n- mapping\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_settings(base, overlay_config_dir=overlay, env={})


def test_load_settings_rejects_unknown_keys(tmp_path: Path):
    base = _write_base(tmp_path, BASE_SETTINGS + "metrics:\n  enabled: true\n")

    with pytest.raises(ConfigError):
        load_settings(base, env={})

    settings = load_settings(base, allow_unknown=True, env={})
    assert settings.tmdb.base_url == "https://tmdb.test/3"


def test_load_settings_rejects_missing_resilience_keys(tmp_path: Path):
    base = _write_base(tmp_path, BASE_SETTINGS.replace("  breaker_reset_seconds: 10\n", ""))

    with pytest.raises(ConfigError):
        load_settings(base, env={})


def test_environment_overrides_secrets(tmp_path: Path):
    settings = load_settings(
        _write_base(tmp_path),
        env={"KINOPOISK_API_KEY": "kp-key", "TMDB_API_KEY": "tmdb-key", "REVIEW_SERVICE_TOKEN": "jwt"},
    )

    assert settings.kinopoisk.api_key == "kp-key"
    assert settings.tmdb.api_key == "tmdb-key"
    assert settings.reviews.token == "jwt"
    require_api_keys(settings)


def test_require_api_keys_lists_missing_keys(tmp_path: Path):
    settings = load_settings(_write_base(tmp_path), env={})

    with pytest.raises(ConfigError) as exc_info:
        require_api_keys(settings)

    assert "KINOPOISK_API_KEY" in str(exc_info.value)
    assert "TMDB_API_KEY" in str(exc_info.value)
