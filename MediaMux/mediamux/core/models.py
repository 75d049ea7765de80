from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class JobKind(StrEnum):
    MERGE = "merge"
    EXTRACT_AUDIO = "extract_audio"
    REMOVE_AUDIO = "remove_audio"
    DOWNLOAD = "download"


class JobState(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_JOB_STATES = frozenset(
    {
        JobState.COMPLETED.value,
        JobState.FAILED.value,
    }
)


class Severity(StrEnum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class MergeParams:
    video_path: str
    audio_path: str
    output_path: str


@dataclass(frozen=True, slots=True)
class ExtractAudioParams:
    video_path: str
    output_path: str


@dataclass(frozen=True, slots=True)
class RemoveAudioParams:
    video_path: str
    output_path: str


@dataclass(frozen=True, slots=True)
class DownloadParams:
    url: str
    output_folder: str
    filename: str = ""
    video_format_id: str = ""
    audio_format_id: str = ""
    audio_only: bool = False
    password: str = ""
    duration_seconds: float | None = None


JobParams = MergeParams | ExtractAudioParams | RemoveAudioParams | DownloadParams

PARAMS_BY_KIND: dict[JobKind, type] = {
    JobKind.MERGE: MergeParams,
    JobKind.EXTRACT_AUDIO: ExtractAudioParams,
    JobKind.REMOVE_AUDIO: RemoveAudioParams,
    JobKind.DOWNLOAD: DownloadParams,
}


@dataclass(slots=True)
class Job:
    job_id: int
    kind: JobKind
    params: JobParams
    state: str = JobState.PENDING.value
    progress: int = 0
    error: str = ""
    output_location: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_JOB_STATES


@dataclass(frozen=True, slots=True)
class VideoVariant:
    format_id: str
    height: int
    width: int | None = None
    fps: float | None = None
    codec: str = ""
    ext: str = ""
    approx_size_bytes: int | None = None
    has_audio: bool = False

    @property
    def resolution(self) -> str:
        if self.width:
            return f"{self.width}x{self.height}"
        return f"{self.height}p"


@dataclass(frozen=True, slots=True)
class AudioVariant:
    format_id: str
    bitrate_kbps: float = 0.0
    codec: str = ""
    ext: str = ""
    language: str = "default"
    approx_size_bytes: int | None = None


@dataclass(slots=True)
class AudioTrack:
    language: str
    variants: list[AudioVariant] = field(default_factory=list)


@dataclass(slots=True)
class RemoteMediaInfo:
    url: str
    title: str = ""
    uploader: str = ""
    duration_seconds: float | None = None
    thumbnail_url: str = ""
    video_variants: list[VideoVariant] = field(default_factory=list)
    audio_tracks: list[AudioTrack] = field(default_factory=list)


@dataclass(slots=True)
class MediaProbeResult:
    path: str
    duration_seconds: float | None = None
    has_video: bool = False
    has_audio: bool = False
    audio_codec: str = ""
    audio_bitrate: int | None = None
    sample_rate: int | None = None


@dataclass(frozen=True, slots=True)
class DurationComparison:
    status: str
    message: str
    difference_seconds: float


@dataclass(slots=True)
class RecentFileEntry:
    path: str
    kind: str
    timestamp_utc: str


@dataclass(frozen=True, slots=True)
class Started:
    job_id: int
    command: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Progress:
    job_id: int
    percent: int


@dataclass(frozen=True, slots=True)
class Completed:
    job_id: int
    output_location: str


@dataclass(frozen=True, slots=True)
class Failed:
    job_id: int
    reason: str


AdapterEvent = Started | Progress | Completed | Failed
