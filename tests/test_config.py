from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from artifact_sweeper.config import Settings, load_settings, parse_flag, parse_skip_recent, resolve_config, split_repository
from artifact_sweeper.errors import ConfigError

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("GITHUB_REPOSITORY", "GITHUB_TOKEN", "GH_TOKEN", "SWEEPER_ENV", "SWEEPER_BRANCH", "AGE", "SKIP_TAGS", "SKIP_RECENT"):
        monkeypatch.delenv(name, raising=False)


def _settings(**overrides) -> Settings:  # type: ignore[no-untyped-def]
    values = {"repository": "octo/widgets"}
    values.update(overrides)
    return Settings(**values)


def test_resolve_config_defaults(caplog):
    caplog.set_level(logging.INFO)

    config = resolve_config(_settings(), age="30 days", now=NOW)

    assert (config.owner, config.repo) == ("octo", "widgets")
    assert config.repository == "octo/widgets"
    assert config.max_age == NOW - timedelta(days=30)
    assert config.skip_tags is False
    assert config.skip_recent == 0
    assert config.per_page == 100
    assert config.branch == "master"
    assert config.retries_enabled is True
    assert config.run_lookback_days == 10
    assert config.dry_run is False
    assert "Maximum artifact age: 30 days ( created before 2026-09-19T12:00:00+00:00 )" in caplog.text


def test_cutoff_tracks_current_time():
    before = datetime.now(timezone.utc)
    config = resolve_config(_settings(), age="2 hours")
    after = datetime.now(timezone.utc)

    assert before - timedelta(hours=2) <= config.max_age <= after - timedelta(hours=2)


def test_missing_age_is_rejected():
    with pytest.raises(ConfigError, match="age"):
        resolve_config(_settings(), age="")


def test_non_numeric_skip_recent_is_rejected():
    with pytest.raises(ConfigError, match="skip-recent option must be type of number."):
        resolve_config(_settings(), age="30 days", skip_recent="a few")


@pytest.mark.parametrize(("raw", "expected"), [(None, 0), ("", 0), ("  ", 0), ("0", 0), ("5", 5), (" 12 ", 12)])
def test_parse_skip_recent(raw, expected):
    assert parse_skip_recent(raw) == expected


def test_negative_skip_recent_is_rejected():
    with pytest.raises(ConfigError):
        parse_skip_recent("-2")


@pytest.mark.parametrize("raw", ["yes", "Y", "true", "TRUE", "1", "on"])
def test_parse_flag_truthy(raw):
    assert parse_flag(raw) is True


@pytest.mark.parametrize("raw", [None, "", "no", "n", "false", "0", "off"])
def test_parse_flag_falsy(raw):
    assert parse_flag(raw) is False


def test_parse_flag_unknown_value_warns(caplog):
    assert parse_flag("perhaps") is False
    assert "Unrecognised skip-tags value 'perhaps'" in caplog.text


@pytest.mark.parametrize("raw", ["", "widgets", "octo/", "/widgets", "octo/widgets/extra"])
def test_malformed_repository_fails_fast(raw):
    with pytest.raises(ConfigError, match="owner/name"):
        split_repository(raw)


def test_malformed_repository_rejected_before_age_parsing():
    with pytest.raises(ConfigError, match="owner/name"):
        resolve_config(_settings(repository="widgets"), age="30 days")


def test_config_is_immutable():
    config = resolve_config(_settings(), age="30 days", now=NOW)
    with pytest.raises(ValidationError):
        config.skip_recent = 4  # type: ignore[misc]


def test_dev_environment_implies_dry_run():
    config = resolve_config(_settings(environment="dev"), age="1 day", now=NOW)
    assert config.dry_run is True


def test_explicit_concurrency_overrides_settings():
    config = resolve_config(_settings(max_concurrency=3), age="1 day", max_concurrency=7, now=NOW)
    assert config.max_concurrency == 7


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("GITHUB_REPOSITORY", "acme/rockets")
    monkeypatch.setenv("GH_TOKEN", "secret")
    monkeypatch.setenv("SWEEPER_MAX_CONCURRENCY", "3")
    monkeypatch.setenv("SWEEPER_BRANCH", "main")

    settings = Settings()

    assert settings.repository == "acme/rockets"
    assert settings.token == "secret"
    assert settings.max_concurrency == 3
    assert settings.branch == "main"
    assert settings.to_dict()["token"] == "***"


def test_read_input_falls_back_to_plain_variables_in_dev(monkeypatch):
    monkeypatch.setenv("AGE", "7 days")
    monkeypatch.setenv("SKIP_RECENT", "2")

    dev = Settings(environment="dev")
    prod = Settings()

    assert dev.read_input("age", None) == "7 days"
    assert dev.read_input("skip-recent", None) == "2"
    assert dev.read_input("age", "1 day") == "1 day"
    assert prod.read_input("age", None) is None


def test_dotenv_file_is_loaded_in_development(monkeypatch, tmp_path):
    monkeypatch.setenv("SWEEPER_ENV", "dev")
    (tmp_path / ".env").write_text("AGE=3 days\nGITHUB_REPOSITORY=octo/dotenv\n", encoding="utf-8")

    settings = load_settings()

    assert settings.is_dev
    assert settings.repository == "octo/dotenv"
    assert settings.read_input("age", None) == "3 days"


def test_dotenv_file_is_ignored_in_production(monkeypatch, tmp_path):
    monkeypatch.setenv("GITHUB_REPOSITORY", "octo/widgets")
    (tmp_path / ".env").write_text("SWEEPER_ENV=dev\nSWEEPER_BRANCH=gh-pages\n", encoding="utf-8")

    settings = load_settings()
    config = resolve_config(settings, age="30 days", now=NOW)

    assert not settings.is_dev
    assert config.dry_run is False
    assert config.branch == "master"
    assert Settings().branch == "master"
