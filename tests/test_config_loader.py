"""Tests for config loading, validation, and env overrides."""

import os
import tempfile

import pytest
import yaml

from maktaba.config_loader import (
    CREDENTIAL_ENV_VARS,
    _apply_env_overrides,
    _deep_merge,
    _expand_paths,
    load_config,
    validate_config,
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in CREDENTIAL_ENV_VARS + ("MAKTABA_LOG_LEVEL", "MAKTABA_DB_PATH"):
        monkeypatch.delenv(name, raising=False)


def test_deep_merge_basic():
    base = {"a": 1, "b": {"c": 2}}
    override = {"b": {"d": 3}, "e": 4}
    result = _deep_merge(base, override)
    assert result == {"a": 1, "b": {"c": 2, "d": 3}, "e": 4}


def test_deep_merge_override_value():
    assert _deep_merge({"a": 1}, {"a": 2}) == {"a": 2}


def test_expand_paths():
    config = {"path": "~/data", "nested": {"path": "~/more"}, "num": 42}
    result = _expand_paths(config)
    assert "~" not in result["path"]
    assert "~" not in result["nested"]["path"]
    assert result["num"] == 42


def test_env_keys_skip_blanks(monkeypatch, clean_env):
    monkeypatch.setenv("GOOGLE_KEY_1", "key-a")
    monkeypatch.setenv("GOOGLE_KEY_2", "  ")
    monkeypatch.setenv("GOOGLE_KEY_4", "key-d")
    result = _apply_env_overrides({"gemini": {"api_keys": ["from-file"]}})
    assert result["gemini"]["api_keys"] == ["key-a", "key-d"]


def test_env_overrides_logging_and_db(monkeypatch, clean_env):
    monkeypatch.setenv("MAKTABA_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("MAKTABA_DB_PATH", "/tmp/wl.db")
    result = _apply_env_overrides({})
    assert result["logging"]["level"] == "DEBUG"
    assert result["watchlist"]["path"] == "/tmp/wl.db"


def test_no_env_keeps_file_keys(clean_env):
    result = _apply_env_overrides({"gemini": {"api_keys": ["from-file"]}})
    assert result["gemini"]["api_keys"] == ["from-file"]


def test_load_config_defaults(clean_env):
    config = load_config(use_dotenv=False)
    assert config["gemini"]["timeout"] == 30.0
    assert config["gemini"]["generation"]["max_output_tokens"] == 512
    assert config["live"]["capture_sample_rate"] == 16000
    assert config["live"]["playback_sample_rate"] == 24000


def test_load_config_from_file_merges_defaults(clean_env):
    config_data = {"gemini": {"timeout": 5}, "watchlist": {"path": "/tmp/test.db"}}
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.dump(config_data, f)
        path = f.name

    try:
        config = load_config(path, use_dotenv=False)
        assert config["gemini"]["timeout"] == 5
        assert config["gemini"]["endpoint"].startswith("https://")
        assert config["watchlist"]["path"] == "/tmp/test.db"
    finally:
        os.unlink(path)


def test_load_config_missing_file():
    with pytest.raises(FileNotFoundError):
        load_config("/nonexistent/config.yaml")


# -- Validation --

def test_validate_defaults_are_valid(clean_env):
    assert validate_config(load_config(use_dotenv=False)) == []


def test_validate_bad_timeout(clean_env):
    config = load_config(use_dotenv=False)
    config["gemini"]["timeout"] = 0
    assert any("timeout" in e for e in validate_config(config))


def test_validate_bad_sample_rate(clean_env):
    config = load_config(use_dotenv=False)
    config["live"]["playback_sample_rate"] = 12345
    assert any("playback_sample_rate" in e for e in validate_config(config))


def test_validate_keys_not_a_list(clean_env):
    config = load_config(use_dotenv=False)
    config["gemini"]["api_keys"] = "single-key"
    assert any("api_keys" in e for e in validate_config(config))


def test_validate_empty_db_path(clean_env):
    config = load_config(use_dotenv=False)
    config["watchlist"]["path"] = ""
    assert any("watchlist" in e for e in validate_config(config))


def test_validate_unknown_generation_key(clean_env):
    config = load_config(use_dotenv=False)
    config["gemini"]["generation"]["topk"] = 40
    errors = validate_config(config)
    assert any("unknown keys: topk" in e for e in errors)
