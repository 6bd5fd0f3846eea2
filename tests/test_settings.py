"""Tests for configuration loading."""

import json

import pytest
from pydantic import ValidationError

from config.settings import AppConfig, ModelConfig, MatchmakingConfig, get_default_config, get_template_config


def test_template_defaults():
    config = get_template_config()
    assert config.judging.panel_size == 3
    assert config.rules.expired_submission_text == "[No submission - Time expired]"
    assert config.scheduler.cron_secret is None


def test_yaml_round_trip(tmp_path):
    path = tmp_path / "arena.yaml"
    config = get_template_config()
    config.matchmaking.per_sweep_cap = 2
    config.save_to_file(path)

    loaded = AppConfig.load_from_file(path)

    assert loaded.matchmaking.per_sweep_cap == 2
    assert loaded.system.provider.base_url == "https://api.deepseek.com"


def test_json_file_and_environment_overrides(tmp_path, monkeypatch):
    path = tmp_path / "arena_config.json"
    path.write_text(json.dumps({"judging": {"panel_size": 5}, "system": {"database_path": "file.db"}}))
    monkeypatch.setenv("ARENA_CRON_SECRET", "from-env")
    monkeypatch.setenv("ARENA_DATABASE_PATH", "env.db")

    config = get_default_config(path)

    assert config.judging.panel_size == 5
    assert config.scheduler.cron_secret == "from-env"
    assert config.system.database_path == "env.db"


def test_missing_file_uses_template(tmp_path, monkeypatch):
    monkeypatch.delenv("ARENA_CRON_SECRET", raising=False)
    config = get_default_config(tmp_path / "absent.json")
    assert config.rules.default_total_rounds == 5


def test_invalid_files_are_rejected(tmp_path):
    unknown = tmp_path / "unknown.json"
    unknown.write_text(json.dumps({"moderation": {}}))
    with pytest.raises(ValueError, match="Unknown config sections"):
        AppConfig.load_from_file(unknown)

    listing = tmp_path / "list.yaml"
    listing.write_text("- one\n- two\n")
    with pytest.raises(ValueError, match="mapping"):
        AppConfig.load_from_file(listing)

    with pytest.raises(FileNotFoundError):
        AppConfig.load_from_file(tmp_path / "nope.json")


def test_field_validation():
    with pytest.raises(ValidationError):
        ModelConfig(name="judge", provider="carrier-pigeon")
    with pytest.raises(ValidationError):
        MatchmakingConfig(personality_preference=["GRUMPY"])
