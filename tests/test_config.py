from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from hexboard.board.preferences import DEFAULT_DISCONNECT_VELOCITY, PreferencesStore, UserPreferences
from hexboard.config import feature_flags, load_settings


def test_settings_defaults(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    settings = load_settings(env={})
    assert settings.token_ttl == 7 * 24 * 3600
    assert settings.update_interval == pytest.approx(0.09)
    assert settings.presence_interval == pytest.approx(0.06)
    assert settings.history_depth == 20
    assert not settings.is_invited("alice@example.com")


def test_settings_env_overrides_and_lists(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    (tmp_path / "hexboard.json").write_text(
        json.dumps({"server": {"port": 9000, "invite_allowlist": "x@example.com"}}),
        encoding="utf-8",
    )
    settings = load_settings(
        env={
            "HEXBOARD_INVITE_ALLOWLIST": " Alice@Example.com, bob@example.com ,",
            "HEXBOARD_TOKEN_TTL": "60",
        }
    )
    assert settings.port == 9000
    assert settings.token_ttl == 60
    assert settings.invite_allowlist == ["Alice@Example.com", "bob@example.com"]
    assert settings.is_invited("alice@example.com")
    assert not settings.is_invited("x@example.com")


def test_settings_reject_invalid_values(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ValidationError):
        load_settings(env={"HEXBOARD_PORT": "0"})


def test_feature_flags_default_and_file_override(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    feature_flags.reset_cache()
    assert feature_flags.is_enabled("enable_collaboration")
    assert not feature_flags.is_enabled("unknown_flag")
    assert feature_flags.is_enabled("unknown_flag", default=True)

    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "hexboard.json").write_text(
        json.dumps({"features": {"enable_share_links": False, "enable_collaboration": "no"}}),
        encoding="utf-8",
    )
    flags = feature_flags.load_feature_flags(refresh=True)
    assert flags["enable_share_links"] is False
    # non-boolean values are ignored
    assert flags["enable_collaboration"] is True
    feature_flags.reset_cache()


def test_preferences_round_trip_per_user(tmp_path) -> None:
    store = PreferencesStore(tmp_path / "nested" / "prefs.json")
    assert store.load("u1").disconnect_velocity_threshold == DEFAULT_DISCONNECT_VELOCITY

    store.set_disconnect_velocity("u1", 150)
    store.set_disconnect_velocity(None, 30)
    assert store.load("u1").disconnect_velocity_threshold == 150
    assert store.load(None).disconnect_velocity_threshold == 30
    assert store.load("u2").disconnect_velocity_threshold == DEFAULT_DISCONNECT_VELOCITY


def test_preferences_reject_negative_velocity(tmp_path) -> None:
    with pytest.raises(ValidationError):
        UserPreferences(disconnect_velocity_threshold=-1)

    path = tmp_path / "prefs.json"
    path.write_text(json.dumps({"u1": {"disconnect_velocity_threshold": -5}}), encoding="utf-8")
    assert PreferencesStore(path).load("u1").disconnect_velocity_threshold == DEFAULT_DISCONNECT_VELOCITY

    path.write_text("{broken", encoding="utf-8")
    assert PreferencesStore(path).load("u1") == UserPreferences()
