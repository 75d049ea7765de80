from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

APP_NAME = "MediaMux"
APP_VERSION = "1.2.0"

CONFIG_FILENAME = "MediaMux_config.json"
CONFIG_SCHEMA_VERSION = 3

METADATA_TIMEOUT_SECONDS_MIN = 1
METADATA_TIMEOUT_SECONDS_MAX = 120
RECENT_FILES_LIMIT_MIN = 0
RECENT_FILES_LIMIT_MAX = 100

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AppConfig:
    schema_version: int
    download_location: str
    ffmpeg_path: str = ""
    ffprobe_path: str = ""
    ytdlp_binary: str = ""
    auto_start_queue: bool = True
    metadata_timeout_seconds: int = 15
    recent_files_limit: int = 10
    disable_history: bool = False
    notify_on_completion: bool = True


def _paths():
    from . import paths as paths_module

    return paths_module


def _coerce_int(value: object, default: int, minimum: int, maximum: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        parsed = default
    return max(minimum, min(maximum, parsed))


def _coerce_bool(value: object, *, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes", "on"}:
            return True
        if lowered in {"false", "0", "no", "off"}:
            return False
    return default


def _coerce_non_empty_text(value: object, *, default: str) -> str:
    text = str(value or "").strip()
    return text if text else str(default)


def _coerce_optional_path(value: object) -> str:
    text = str(value or "").strip()
    if not text:
        return ""
    return str(Path(text).expanduser())


def default_config() -> AppConfig:
    return AppConfig(
        schema_version=CONFIG_SCHEMA_VERSION,
        download_location=str(_paths().default_download_dir()),
        ffmpeg_path="",
        ffprobe_path="",
        ytdlp_binary="",
        auto_start_queue=True,
        metadata_timeout_seconds=15,
        recent_files_limit=10,
        disable_history=False,
        notify_on_completion=True,
    )


def _sanitize_payload(payload: dict[str, object]) -> AppConfig:
    defaults = default_config()
    return AppConfig(
        schema_version=CONFIG_SCHEMA_VERSION,
        download_location=_coerce_non_empty_text(
            payload.get("download_location", defaults.download_location),
            default=defaults.download_location,
        ),
        ffmpeg_path=_coerce_optional_path(payload.get("ffmpeg_path")),
        ffprobe_path=_coerce_optional_path(payload.get("ffprobe_path")),
        ytdlp_binary=_coerce_optional_path(payload.get("ytdlp_binary")),
        auto_start_queue=_coerce_bool(payload.get("auto_start_queue"), default=defaults.auto_start_queue),
        metadata_timeout_seconds=_coerce_int(
            payload.get("metadata_timeout_seconds", defaults.metadata_timeout_seconds),
            defaults.metadata_timeout_seconds,
            METADATA_TIMEOUT_SECONDS_MIN,
            METADATA_TIMEOUT_SECONDS_MAX,
        ),
        recent_files_limit=_coerce_int(
            payload.get("recent_files_limit", defaults.recent_files_limit),
            defaults.recent_files_limit,
            RECENT_FILES_LIMIT_MIN,
            RECENT_FILES_LIMIT_MAX,
        ),
        disable_history=_coerce_bool(payload.get("disable_history"), default=defaults.disable_history),
        notify_on_completion=_coerce_bool(
            payload.get("notify_on_completion"),
            default=defaults.notify_on_completion,
        ),
    )


def config_path() -> Path:
    return _paths().runtime_storage_dir() / CONFIG_FILENAME


def _load_config_from_path(path: Path) -> AppConfig | None:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(raw, dict):
            return _sanitize_payload(raw)
    except (OSError, UnicodeError, json.JSONDecodeError, TypeError, ValueError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)
        return None
    return None


def load_config() -> AppConfig:
    primary = config_path()
    if primary.exists():
        loaded = _load_config_from_path(primary)
        if loaded is not None:
            return loaded
    return default_config()


def config_to_dict(config: AppConfig) -> dict[str, object]:
    return {
        "schema_version": CONFIG_SCHEMA_VERSION,
        "download_location": str(config.download_location),
        "ffmpeg_path": str(config.ffmpeg_path or ""),
        "ffprobe_path": str(config.ffprobe_path or ""),
        "ytdlp_binary": str(config.ytdlp_binary or ""),
        "auto_start_queue": bool(config.auto_start_queue),
        "metadata_timeout_seconds": int(config.metadata_timeout_seconds),
        "recent_files_limit": int(config.recent_files_limit),
        "disable_history": bool(config.disable_history),
        "notify_on_completion": bool(config.notify_on_completion),
    }


def save_config(config: AppConfig) -> str | None:
    payload = config_to_dict(config)
    path = config_path()
    tmp_path = path.with_suffix(f"{path.suffix}.tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(str(tmp_path), str(path))
        return str(path)
    except (OSError, TypeError, ValueError) as exc:
        logger.warning("Failed to save config to %s: %s", path, exc)
        try:
            tmp_path.unlink(missing_ok=True)
        except OSError:
            pass
        return None
