from __future__ import annotations

import logging
import re
from pathlib import Path
from urllib.parse import urlparse

from .errors import MetadataFetchFailed, PasswordRequired
from .formatting import sanitize_error_text
from .models import AudioTrack, AudioVariant, DownloadParams, RemoteMediaInfo, VideoVariant

DEFAULT_LANGUAGE = "default"
AUDIO_EXTRACT_FORMAT = "mp3"
AUDIO_EXTRACT_QUALITY = "0"
MERGE_OUTPUT_FORMAT = "mp4"
DEFAULT_FILENAME_TEMPLATE = "%(title)s"
BEST_AUDIO_SELECTOR = "bestaudio/best"
BEST_MUXED_SELECTOR = "bestvideo+bestaudio/best"

_PASSWORD_MARKERS = (
    "video password",
    "--video-password",
    "protected by a password",
    "password protected video",
)
_KNOWN_MEDIA_SUFFIXES = {
    ".aac",
    ".flac",
    ".m4a",
    ".mkv",
    ".mov",
    ".mp3",
    ".mp4",
    ".ogg",
    ".opus",
    ".wav",
    ".webm",
}
_UNSAFE_FILENAME_RE = re.compile(r"[\\/:*?\"<>|]+")

logger = logging.getLogger(__name__)


def coerce_http_url(url: str) -> str:
    value = str(url or "").strip()
    if not value:
        return ""
    try:
        parsed = urlparse(value)
    except ValueError:
        return value
    if parsed.scheme:
        return value

    candidate = f"https:{value}" if value.startswith("//") else f"https://{value}"
    try:
        reparsed = urlparse(candidate)
    except ValueError:
        return value
    host = str(reparsed.netloc or "").strip()
    if (not host) or (" " in host) or ("." not in host):
        return value
    return candidate


def validate_url(url: str) -> bool:
    value = coerce_http_url(url)
    if not value:
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def _has_codec(value: object) -> bool:
    codec = str(value or "").strip().lower()
    return bool(codec) and codec != "none"


def _positive_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and value > 0:
        return int(round(float(value)))
    return None


def _positive_float(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and value > 0:
        return float(value)
    return None


def _approx_size(fmt: dict[str, object]) -> int | None:
    return _positive_int(fmt.get("filesize")) or _positive_int(fmt.get("filesize_approx"))


def _iter_formats(raw: dict[str, object]) -> list[dict[str, object]]:
    formats = raw.get("formats")
    if not isinstance(formats, list):
        return []
    return [item for item in formats if isinstance(item, dict)]


def resolve_video_variants(raw: dict[str, object]) -> list[VideoVariant]:
    variants: list[VideoVariant] = []
    for fmt in _iter_formats(raw):
        height = _positive_int(fmt.get("height"))
        if not _has_codec(fmt.get("vcodec")) or height is None:
            continue
        variants.append(
            VideoVariant(
                format_id=str(fmt.get("format_id") or ""),
                height=height,
                width=_positive_int(fmt.get("width")),
                fps=_positive_float(fmt.get("fps")),
                codec=str(fmt.get("vcodec") or ""),
                ext=str(fmt.get("ext") or ""),
                approx_size_bytes=_approx_size(fmt),
                has_audio=_has_codec(fmt.get("acodec")),
            )
        )
    # sorted() is stable, equal heights keep source order
    return sorted(variants, key=lambda item: item.height, reverse=True)


def resolve_audio_variants(raw: dict[str, object]) -> list[AudioVariant]:
    variants: list[AudioVariant] = []
    for fmt in _iter_formats(raw):
        if not _has_codec(fmt.get("acodec")) or _has_codec(fmt.get("vcodec")):
            continue
        bitrate = _positive_float(fmt.get("abr")) or _positive_float(fmt.get("tbr")) or 0.0
        language = str(fmt.get("language") or "").strip() or DEFAULT_LANGUAGE
        variants.append(
            AudioVariant(
                format_id=str(fmt.get("format_id") or ""),
                bitrate_kbps=bitrate,
                codec=str(fmt.get("acodec") or ""),
                ext=str(fmt.get("ext") or ""),
                language=language,
                approx_size_bytes=_approx_size(fmt),
            )
        )
    return sorted(variants, key=lambda item: item.bitrate_kbps, reverse=True)


def group_audio_tracks(variants: list[AudioVariant]) -> list[AudioTrack]:
    # Track order follows the first time each language is seen in ``variants``.
    tracks: dict[str, AudioTrack] = {}
    for variant in variants:
        track = tracks.get(variant.language)
        if track is None:
            track = AudioTrack(language=variant.language)
            tracks[variant.language] = track
        track.variants.append(variant)
    return list(tracks.values())


def resolve_media_info(raw: dict[str, object], url: str = "") -> RemoteMediaInfo:
    if not isinstance(raw, dict):
        raw = {}
    return RemoteMediaInfo(
        url=str(url or raw.get("webpage_url") or raw.get("original_url") or ""),
        title=str(raw.get("title") or ""),
        uploader=str(raw.get("channel") or raw.get("uploader") or ""),
        duration_seconds=_positive_float(raw.get("duration")),
        thumbnail_url=str(raw.get("thumbnail") or ""),
        video_variants=resolve_video_variants(raw),
        audio_tracks=group_audio_tracks(resolve_audio_variants(raw)),
    )


def _output_template(params: DownloadParams) -> str:
    name = str(params.filename or "").strip()
    if name:
        stem = Path(name).stem if Path(name).suffix.lower() in _KNOWN_MEDIA_SUFFIXES else name
        name = _UNSAFE_FILENAME_RE.sub("_", stem).strip(" .") or DEFAULT_FILENAME_TEMPLATE
    else:
        name = DEFAULT_FILENAME_TEMPLATE
    folder = Path(params.output_folder).expanduser()
    return str(folder / f"{name}.%(ext)s")


def _format_arguments(params: DownloadParams) -> list[str]:
    video_id = str(params.video_format_id or "").strip()
    audio_id = str(params.audio_format_id or "").strip()
    extract_args = [
        "--extract-audio",
        "--audio-format",
        AUDIO_EXTRACT_FORMAT,
        "--audio-quality",
        AUDIO_EXTRACT_QUALITY,
    ]
    if params.audio_only:
        return ["-f", audio_id or BEST_AUDIO_SELECTOR, *extract_args]
    if video_id and audio_id:
        return ["-f", f"{video_id}+{audio_id}", "--merge-output-format", MERGE_OUTPUT_FORMAT]
    if video_id:
        return ["-f", video_id]
    if audio_id:
        return ["-f", audio_id, *extract_args]
    return ["-f", BEST_MUXED_SELECTOR, "--merge-output-format", MERGE_OUTPUT_FORMAT]


def build_download_command(
    params: DownloadParams,
    *,
    downloader_prefix: list[str],
    ffmpeg_path: str | None = None,
) -> list[str]:
    """Build the downloader argument vector for one download.

    Selection priority: audio-only request, explicit video+audio, video only,
    audio only, then best available muxed. ``--ffmpeg-location`` is only
    passed when a local ffmpeg was resolved.
    """
    command = [
        *downloader_prefix,
        "--newline",
        "--no-playlist",
        *_format_arguments(params),
        "-o",
        _output_template(params),
    ]
    if ffmpeg_path:
        command.extend(["--ffmpeg-location", str(ffmpeg_path)])
    if params.password:
        command.extend(["--video-password", params.password])
    command.append(coerce_http_url(params.url))
    return command


def is_password_error(message: str) -> bool:
    lowered = sanitize_error_text(message).lower()
    return any(marker in lowered for marker in _PASSWORD_MARKERS)


def classify_metadata_error(url: str, message: object) -> MetadataFetchFailed | PasswordRequired:
    text = sanitize_error_text(message) or "Could not read media information."
    if is_password_error(text):
        return PasswordRequired(url, text)
    return MetadataFetchFailed(url, text)


def _metadata_extract_options(timeout_seconds: float | None = None, password: str = "") -> dict[str, object]:
    opts: dict[str, object] = {
        "quiet": True,
        "no_warnings": True,
        "skip_download": True,
        "simulate": True,
        "noplaylist": True,
        "retries": 0,
        "extractor_retries": 0,
    }
    if isinstance(timeout_seconds, (int, float)):
        opts["socket_timeout"] = max(1.0, float(timeout_seconds))
    if password:
        opts["videopassword"] = password
    return opts


def fetch_media_info(url: str, *, password: str = "", timeout_seconds: float | None = None) -> RemoteMediaInfo:
    value = coerce_http_url(url)
    if not validate_url(value):
        raise MetadataFetchFailed(value, "Invalid URL")
    from yt_dlp import YoutubeDL

    try:
        with YoutubeDL(_metadata_extract_options(timeout_seconds, password)) as ydl:
            info = ydl.extract_info(value, download=False)
    except Exception as exc:
        error = classify_metadata_error(value, exc)
        logger.info("Metadata fetch failed for %s (%s): %s", value, type(error).__name__, error)
        raise error from exc
    return resolve_media_info(info if isinstance(info, dict) else {}, value)
