from __future__ import annotations

import os
import shutil
import sys
from functools import lru_cache
from pathlib import Path

from .config import APP_NAME

_BINARY_ENV_TEMPLATE = "MEDIAMUX_{name}_BINARY"
_SYSTEM_BINARY_DIRS = (
    "/usr/bin",
    "/usr/local/bin",
    "/opt/homebrew/bin",
    "C:\\ffmpeg\\bin",
)


@lru_cache(maxsize=1)
def app_dir() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[2]


@lru_cache(maxsize=1)
def appdata_dir() -> Path:
    base = os.environ.get("LOCALAPPDATA")
    if base:
        return Path(base).resolve() / APP_NAME
    return Path.home() / f".{APP_NAME.lower()}"


def default_download_dir() -> Path:
    return Path.home() / "Downloads" / APP_NAME


@lru_cache(maxsize=1)
def runtime_storage_dir() -> Path:
    target = appdata_dir()
    try:
        target.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise RuntimeError(
            f"Unable to create storage directory: {target}. "
            "Check folder permissions and available disk space."
        ) from exc
    return target


def _binary_name_candidates(binary_name: str) -> list[str]:
    if os.name == "nt" and not binary_name.lower().endswith(".exe"):
        return [f"{binary_name}.exe", binary_name]
    return [binary_name]


def _unique_paths(paths: list[Path]) -> list[Path]:
    seen: set[Path] = set()
    unique: list[Path] = []
    for path in paths:
        resolved = path.resolve()
        if resolved in seen:
            continue
        seen.add(resolved)
        unique.append(resolved)
    return unique


def _explicit_binary(binary_name: str, explicit: str) -> str | None:
    env_key = _BINARY_ENV_TEMPLATE.format(name=binary_name.upper().replace("-", ""))
    for raw in (explicit, os.environ.get(env_key, "")):
        value = str(raw or "").strip()
        if not value:
            continue
        candidate = Path(value).expanduser()
        if candidate.is_file():
            return str(candidate)
    return None


def resolve_binary(binary_name: str, explicit: str = "") -> str | None:
    """Locate an external tool.

    Lookup order: explicit path (config), ``MEDIAMUX_<NAME>_BINARY``, the app
    storage and install folders, ``PATH``, then well-known system folders.
    """
    found = _explicit_binary(binary_name, explicit)
    if found:
        return found

    names = _binary_name_candidates(binary_name)
    search_dirs = _unique_paths([appdata_dir(), app_dir()])
    for base in search_dirs:
        for name in names:
            candidate = base / name
            if candidate.is_file():
                return str(candidate)

    for name in names:
        candidate = shutil.which(name)
        if candidate:
            return str(Path(candidate).resolve())

    for base in _SYSTEM_BINARY_DIRS:
        for name in names:
            candidate = Path(base) / name
            if candidate.is_file():
                return str(candidate)
    return None


def resolve_ytdlp_prefix(explicit: str = "") -> list[str] | None:
    binary = resolve_binary("yt-dlp", explicit)
    if binary:
        return [binary]
    if getattr(sys, "frozen", False):
        return None
    try:
        import yt_dlp  # noqa: F401
    except ImportError:
        return None
    return [sys.executable, "-m", "yt_dlp"]
