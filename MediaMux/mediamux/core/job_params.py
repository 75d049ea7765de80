from __future__ import annotations

from collections.abc import Mapping
from dataclasses import fields
from pathlib import Path

from .config import _coerce_bool
from .errors import InvalidParams
from .format_resolver import coerce_http_url, validate_url
from .models import (
    PARAMS_BY_KIND,
    DownloadParams,
    ExtractAudioParams,
    JobKind,
    JobParams,
    MergeParams,
    RemoveAudioParams,
)

_REQUIRED_FIELDS: dict[JobKind, tuple[str, ...]] = {
    JobKind.MERGE: ("video_path", "audio_path", "output_path"),
    JobKind.EXTRACT_AUDIO: ("video_path", "output_path"),
    JobKind.REMOVE_AUDIO: ("video_path", "output_path"),
    JobKind.DOWNLOAD: ("url", "output_folder"),
}


def coerce_kind(kind: JobKind | str) -> JobKind:
    try:
        return JobKind(str(kind or "").strip().lower())
    except ValueError as exc:
        raise InvalidParams(f"Unknown job kind: {kind!r}") from exc


def _same_path(left: str, right: str) -> bool:
    try:
        return Path(left).expanduser().resolve() == Path(right).expanduser().resolve()
    except OSError:
        return left == right


def validate_params(kind: JobKind | str, params: JobParams) -> JobKind:
    key = coerce_kind(kind)
    expected = PARAMS_BY_KIND[key]
    if not isinstance(params, expected):
        raise InvalidParams(f"{key.value} jobs take {expected.__name__}, got {type(params).__name__}")

    missing = [name for name in _REQUIRED_FIELDS[key] if not str(getattr(params, name) or "").strip()]
    if missing:
        raise InvalidParams(f"Missing required {key.value} parameter(s): {', '.join(missing)}")

    if isinstance(params, MergeParams):
        for source in (params.video_path, params.audio_path):
            if _same_path(source, params.output_path):
                raise InvalidParams("Output path must differ from the input files")
    elif isinstance(params, (ExtractAudioParams, RemoveAudioParams)):
        if _same_path(params.video_path, params.output_path):
            raise InvalidParams("Output path must differ from the input file")
    elif isinstance(params, DownloadParams):
        if not validate_url(params.url):
            raise InvalidParams(f"Invalid URL: {params.url}")
    return key


def build_params(kind: JobKind | str, values: Mapping[str, object]) -> JobParams:
    """Build typed params from a loose mapping such as a UI form payload.

    Accepts both snake_case and camelCase keys. Unknown keys are ignored.
    """
    key = coerce_kind(kind)
    params_type = PARAMS_BY_KIND[key]
    lowered = {str(name).replace("_", "").lower(): value for name, value in dict(values or {}).items()}
    kwargs: dict[str, object] = {}
    for item in fields(params_type):
        lookup = item.name.replace("_", "").lower()
        if lookup not in lowered:
            continue
        value = lowered[lookup]
        if item.name == "audio_only":
            kwargs[item.name] = _coerce_bool(value, default=False)
        elif item.name == "duration_seconds":
            try:
                kwargs[item.name] = float(value) if value is not None else None
            except (TypeError, ValueError):
                kwargs[item.name] = None
        else:
            kwargs[item.name] = str(value or "").strip()
    if key is JobKind.DOWNLOAD and kwargs.get("url"):
        kwargs["url"] = coerce_http_url(str(kwargs["url"]))
    try:
        params = params_type(**kwargs)
    except TypeError as exc:
        raise InvalidParams(f"Missing required {key.value} parameter(s): {exc}") from exc
    validate_params(key, params)
    return params
