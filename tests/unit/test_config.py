"""Unit tests for configuration loading."""

from __future__ import annotations

import pytest

from livebid.config import DEFAULT_LINK_TEMPLATE, get_server_config, parse_server_config


def test_defaults():
    config = parse_server_config({})

    assert config.storage.backend == "in_memory"
    assert config.transport.send_timeout_ms == 1000
    assert config.resolution.max_retries == 1
    assert config.notifications.link_template == DEFAULT_LINK_TEMPLATE
    assert config.logging.level == "INFO"


def test_negative_retries_rejected():
    with pytest.raises(ValueError):
        parse_server_config({"resolution": {"max_retries": -1}})


def test_config_path_from_environment(tmp_path, monkeypatch):
    path = tmp_path / "server.yaml"
    path.write_text(
        "transport:\n  send_timeout_ms: 250\n"
        "storage:\n  backend: redis\n  options:\n    url: redis://cache:6379/1\n"
        "logging:\n  level: debug\n"
    )
    monkeypatch.setenv("LIVEBID_CONFIG_PATH", str(path))
    get_server_config.cache_clear()
    try:
        config = get_server_config()
    finally:
        get_server_config.cache_clear()

    assert config.transport.send_timeout_ms == 250
    assert config.storage.backend == "redis"
    assert config.storage.options["url"] == "redis://cache:6379/1"
    assert config.logging.level == "DEBUG"


def test_missing_config_file(tmp_path, monkeypatch):
    monkeypatch.setenv("LIVEBID_CONFIG_PATH", str(tmp_path / "absent.yaml"))
    get_server_config.cache_clear()
    try:
        with pytest.raises(FileNotFoundError):
            get_server_config()
    finally:
        get_server_config.cache_clear()
