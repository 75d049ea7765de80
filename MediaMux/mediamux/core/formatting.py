from __future__ import annotations

import math
import re
from pathlib import Path

from .models import AudioVariant, JobKind, VideoVariant

_ANSI_ESCAPE_RE = re.compile(r"\x1B\[[0-?]*[ -/]*[@-~]")
_CONTROL_CHAR_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")

_DEFAULT_OUTPUT_SUFFIXES: dict[JobKind, tuple[str, str]] = {
    JobKind.MERGE: ("_with_audio.mp4", "output.mp4"),
    JobKind.EXTRACT_AUDIO: (".mp3", "audio.mp3"),
    JobKind.REMOVE_AUDIO: ("_no_audio.mp4", "video_no_audio.mp4"),
}

_SUCCESS_MESSAGES: dict[JobKind, str] = {
    JobKind.MERGE: "Merge completed successfully!",
    JobKind.EXTRACT_AUDIO: "Audio extracted successfully!",
    JobKind.REMOVE_AUDIO: "Audio removed successfully!",
    JobKind.DOWNLOAD: "Download completed successfully!",
}

_FAILURE_TITLES: dict[JobKind, str] = {
    JobKind.MERGE: "Merge failed",
    JobKind.EXTRACT_AUDIO: "Extraction failed",
    JobKind.REMOVE_AUDIO: "Remove audio failed",
    JobKind.DOWNLOAD: "Download failed",
}


def sanitize_error_text(value: object) -> str:
    text = str(value or "")
    if not text:
        return ""
    no_ansi = _ANSI_ESCAPE_RE.sub("", text)
    no_ctrl = _CONTROL_CHAR_RE.sub("", no_ansi)
    collapsed = no_ctrl.replace("\r", "\n")
    collapsed = re.sub(r"\n{3,}", "\n\n", collapsed)
    return collapsed.strip()


def format_size_human(size_bytes: int | None) -> str:
    if size_bytes is None:
        return "Unknown"
    try:
        value = float(int(size_bytes))
    except Exception:
        return "Unknown"
    if value <= 0:
        return "Unknown"
    units = ("B", "KB", "MB", "GB", "TB")
    unit_index = 0
    while value >= 1024.0 and unit_index < (len(units) - 1):
        value /= 1024.0
        unit_index += 1
    if unit_index == 0:
        return f"{int(value)} {units[unit_index]}"
    return f"{value:.2f} {units[unit_index]}"


def format_duration(seconds: float | None) -> str:
    try:
        value = float(seconds or 0.0)
    except (TypeError, ValueError):
        return "0:00"
    if not math.isfinite(value) or value <= 0:
        return "0:00"
    minutes = int(value // 60)
    secs = int(value % 60)
    return f"{minutes}:{secs:02d}"


def describe_video_variant(variant: VideoVariant) -> str:
    parts = [variant.resolution]
    if variant.fps:
        parts.append(f"{variant.fps:g}fps")
    if variant.codec:
        parts.append(variant.codec)
    if variant.approx_size_bytes:
        parts.append(f"~{format_size_human(variant.approx_size_bytes)}")
    if variant.has_audio:
        parts.append("with audio")
    return " | ".join(parts)


def describe_audio_variant(variant: AudioVariant) -> str:
    parts = [f"{variant.bitrate_kbps:g} kbps" if variant.bitrate_kbps else "unknown bitrate"]
    if variant.codec:
        parts.append(variant.codec)
    if variant.approx_size_bytes:
        parts.append(f"~{format_size_human(variant.approx_size_bytes)}")
    return " | ".join(parts)


def default_output_path(kind: JobKind | str, input_path: str = "") -> str:
    key = JobKind(kind)
    if key not in _DEFAULT_OUTPUT_SUFFIXES:
        raise ValueError(f"No default output name for {key.value} jobs")
    suffix, fallback = _DEFAULT_OUTPUT_SUFFIXES[key]
    raw = str(input_path or "").strip()
    if not raw:
        return fallback
    source = Path(raw)
    return str(source.with_name(f"{source.stem}{suffix}"))


def success_message(kind: JobKind | str) -> str:
    return _SUCCESS_MESSAGES.get(JobKind(kind), "Completed successfully!")


def failure_title(kind: JobKind | str) -> str:
    return _FAILURE_TITLES.get(JobKind(kind), "Job failed")
