from __future__ import annotations

import json

import pytest

from mediamux.core import config as config_module
from mediamux.core.config import (
    CONFIG_SCHEMA_VERSION,
    _sanitize_payload,
    config_to_dict,
    default_config,
    load_config,
    save_config,
)


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "store" / "MediaMux_config.json"
    monkeypatch.setattr(config_module, "config_path", lambda: path)
    return path


def test_defaults():
    config = default_config()

    assert config.schema_version == CONFIG_SCHEMA_VERSION
    assert config.download_location
    assert config.auto_start_queue is True
    assert config.recent_files_limit == 10


def test_sanitize_payload_coerces_and_clamps():
    config = _sanitize_payload(
        {
            "download_location": "  ",
            "auto_start_queue": "off",
            "metadata_timeout_seconds": "9999",
            "recent_files_limit": "five",
            "disable_history": "yes",
            "ffmpeg_path": "  ",
        }
    )

    assert config.download_location == default_config().download_location
    assert config.auto_start_queue is False
    assert config.metadata_timeout_seconds == 120
    assert config.recent_files_limit == 10
    assert config.disable_history is True
    assert config.ffmpeg_path == ""


def test_save_then_load_round_trip(config_file):
    config = default_config()
    config.download_location = str(config_file.parent / "downloads")
    config.notify_on_completion = False

    assert save_config(config) == str(config_file)
    assert not config_file.with_suffix(".json.tmp").exists()

    loaded = load_config()
    assert config_to_dict(loaded) == config_to_dict(config)


def test_load_ignores_corrupt_file(config_file):
    config_file.parent.mkdir(parents=True)
    config_file.write_text("{not json", encoding="utf-8")

    assert config_to_dict(load_config()) == config_to_dict(default_config())


def test_load_keeps_known_keys_only(config_file):
    config_file.parent.mkdir(parents=True)
    config_file.write_text(json.dumps({"auto_start_queue": False, "theme": "dark"}), encoding="utf-8")

    loaded = load_config()

    assert loaded.auto_start_queue is False
    assert "theme" not in config_to_dict(loaded)
