"""Tests for environment-driven server settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from powa.settings import STATIC_DIR, ServerSettings, load_settings

ENV_VARS = [
    "POWA_HOST",
    "POWA_PORT",
    "POWA_PROJECT_ROOT",
    "POWA_CONFIG_PATH",
    "POWA_INDEX_FILE",
    "POWA_FORGE_BIN",
    "POWA_MATCH_CONTRACT",
    "POWA_VERBOSITY",
    "POWA_TEST_TIMEOUT",
    "POWA_SHUTDOWN_GRACE",
    "POWA_LOG_LEVEL",
    "POWA_CORS_ORIGINS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    settings = load_settings()
    assert settings.port == 3000
    assert settings.forge_bin == "forge"
    assert settings.test_timeout == 60.0
    assert settings.project_root == tmp_path.resolve()
    assert settings.resolved_config_path == tmp_path.resolve() / "test" / "powa-config.json"
    assert settings.index_file == STATIC_DIR / "powa-model.html"
    assert settings.index_file.is_file()
    assert settings.cors_origins == ("*",)


def test_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("POWA_PORT", "8123")
    monkeypatch.setenv("POWA_PROJECT_ROOT", str(tmp_path))
    monkeypatch.setenv("POWA_CONFIG_PATH", str(tmp_path / "cfg.json"))
    monkeypatch.setenv("POWA_FORGE_BIN", "/opt/foundry/bin/forge")
    monkeypatch.setenv("POWA_TEST_TIMEOUT", "90")
    monkeypatch.setenv("POWA_LOG_LEVEL", "debug")
    monkeypatch.setenv("POWA_CORS_ORIGINS", "http://localhost:5173, http://127.0.0.1:5173")

    settings = load_settings()
    assert settings.port == 8123
    assert settings.resolved_config_path == tmp_path / "cfg.json"
    assert settings.forge_bin == "/opt/foundry/bin/forge"
    assert settings.test_timeout == 90.0
    assert settings.log_level == "DEBUG"
    assert settings.cors_origins == ("http://localhost:5173", "http://127.0.0.1:5173")


@pytest.mark.parametrize("name,value", [("POWA_PORT", "http"), ("POWA_TEST_TIMEOUT", "soon")])
def test_bad_numbers_rejected(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError, match=name):
        load_settings()


def test_settings_are_frozen():
    settings = ServerSettings(project_root=Path("/srv/powa"))
    with pytest.raises(AttributeError):
        settings.port = 1
