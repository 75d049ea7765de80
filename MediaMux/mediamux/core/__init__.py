from .errors import (
    InvalidParams,
    InvalidState,
    MediaMuxError,
    MetadataFetchFailed,
    PasswordRequired,
    ProbeFailed,
    ProcessFailed,
    ToolUnavailable,
)
from .job_queue import JobQueue
from .models import (
    DownloadParams,
    ExtractAudioParams,
    Job,
    JobKind,
    JobState,
    MergeParams,
    RemoveAudioParams,
)
from .process_adapter import ProcessAdapter, ProcessRun
from .progress import ProgressEstimator

__all__ = [
    "DownloadParams",
    "ExtractAudioParams",
    "InvalidParams",
    "InvalidState",
    "Job",
    "JobKind",
    "JobQueue",
    "JobState",
    "MediaMuxError",
    "MergeParams",
    "MetadataFetchFailed",
    "PasswordRequired",
    "ProbeFailed",
    "ProcessAdapter",
    "ProcessFailed",
    "ProcessRun",
    "ProgressEstimator",
    "RemoveAudioParams",
    "ToolUnavailable",
]
