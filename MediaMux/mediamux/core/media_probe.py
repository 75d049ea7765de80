from __future__ import annotations

import json
import logging
import math
import os
import subprocess

from .errors import ProbeFailed
from .formatting import format_duration
from .models import DurationComparison, MediaProbeResult

PROBE_TIMEOUT_SECONDS = 30.0
MATCH_THRESHOLD_SECONDS = 1.0
CLOSE_THRESHOLD_PERCENT = 5.0

logger = logging.getLogger(__name__)


def _positive_float(value: object) -> float | None:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(parsed) or parsed <= 0:
        return None
    return parsed


def _optional_int(value: object) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_probe_output(path: str, payload: dict[str, object]) -> MediaProbeResult:
    streams = payload.get("streams") if isinstance(payload.get("streams"), list) else []
    fmt = payload.get("format") if isinstance(payload.get("format"), dict) else {}
    video_streams = [s for s in streams if isinstance(s, dict) and s.get("codec_type") == "video"]
    audio_streams = [s for s in streams if isinstance(s, dict) and s.get("codec_type") == "audio"]
    audio = audio_streams[0] if audio_streams else {}
    return MediaProbeResult(
        path=str(path),
        duration_seconds=_positive_float(fmt.get("duration")),
        has_video=bool(video_streams),
        has_audio=bool(audio_streams),
        audio_codec=str(audio.get("codec_name") or ""),
        audio_bitrate=_optional_int(audio.get("bit_rate")),
        sample_rate=_optional_int(audio.get("sample_rate")),
    )


class MediaProbe:
    def __init__(self, ffprobe_path: str | None) -> None:
        self._ffprobe_path = str(ffprobe_path or "").strip()

    @property
    def available(self) -> bool:
        return bool(self._ffprobe_path)

    def probe(self, path: str) -> MediaProbeResult:
        if not self._ffprobe_path:
            raise ProbeFailed("ffprobe is not available")
        command = [
            self._ffprobe_path,
            "-v",
            "error",
            "-show_format",
            "-show_streams",
            "-of",
            "json",
            str(path),
        ]
        try:
            creationflags = subprocess.CREATE_NO_WINDOW if os.name == "nt" else 0
            completed = subprocess.run(
                command,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=PROBE_TIMEOUT_SECONDS,
                check=False,
                creationflags=creationflags,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise ProbeFailed(f"ffprobe could not run: {exc}") from exc
        if completed.returncode != 0:
            detail = (completed.stderr or "").strip() or f"ffprobe exited with {completed.returncode}"
            raise ProbeFailed(detail)
        try:
            payload = json.loads(completed.stdout or "{}")
        except json.JSONDecodeError as exc:
            raise ProbeFailed(f"Unreadable ffprobe output: {exc}") from exc
        if not isinstance(payload, dict):
            raise ProbeFailed("Unexpected ffprobe output")
        return parse_probe_output(path, payload)

    def duration_or_none(self, path: str) -> float | None:
        try:
            return self.probe(path).duration_seconds
        except ProbeFailed as exc:
            logger.warning("Duration probe failed for %s, progress will be coarse: %s", path, exc)
            return None


def compare_durations(video_seconds: float | None, audio_seconds: float | None) -> DurationComparison | None:
    video = _positive_float(video_seconds)
    audio = _positive_float(audio_seconds)
    if video is None or audio is None:
        return None
    diff = abs(video - audio)
    diff_percent = diff / video * 100.0
    if diff < MATCH_THRESHOLD_SECONDS:
        return DurationComparison("match", "Durations match perfectly!", diff)
    if diff_percent < CLOSE_THRESHOLD_PERCENT:
        return DurationComparison("close", f"Durations are close ({format_duration(diff)} difference)", diff)
    if audio > video:
        return DurationComparison(
            "audio_longer",
            f"Audio is {format_duration(diff)} longer than video. Audio will be trimmed.",
            diff,
        )
    return DurationComparison(
        "video_longer",
        f"Video is {format_duration(diff)} longer than audio. Output will end when the audio ends.",
        diff,
    )


def merged_duration(video_seconds: float | None, audio_seconds: float | None) -> float | None:
    known = [value for value in (_positive_float(video_seconds), _positive_float(audio_seconds)) if value is not None]
    if not known:
        return None
    return min(known)
