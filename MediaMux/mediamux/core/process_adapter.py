from __future__ import annotations

import logging
import os
import queue
import re
import shlex
import subprocess
import threading
import time
from collections import deque
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

from .config import AppConfig
from .errors import ProcessFailed, ToolUnavailable
from .format_resolver import build_download_command
from .formatting import sanitize_error_text
from .media_probe import MediaProbe, merged_duration
from .models import (
    AdapterEvent,
    Completed,
    DownloadParams,
    ExtractAudioParams,
    Failed,
    Job,
    JobKind,
    MergeParams,
    Progress,
    RemoveAudioParams,
    Started,
)
from .paths import resolve_binary, resolve_ytdlp_prefix
from .progress import ProgressEstimator

MERGE_AUDIO_CODEC = "aac"
EXTRACT_AUDIO_CODEC = "libmp3lame"
EXTRACT_AUDIO_BITRATE = "192k"
ERROR_TAIL_LINES = 12
PROCESS_STOP_TIMEOUT_SECONDS = 5.0

_PERCENT_RE = re.compile(r"^\[download\]\s+(?P<percent>\d+(?:\.\d+)?)%")
_TIMEMARK_RE = re.compile(r"\btime=\s*(?P<timemark>\d+:\d{2}:\d{2}(?:\.\d+)?)")
_ERROR_LINE_TOKENS = ("error", "invalid", "no such file", "not found", "denied", "failed")
_SECRET_FLAGS = {"--video-password", "--password"}

PopenFactory = Callable[..., subprocess.Popen]

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProcessRun:
    job_id: int
    tool: str
    command: list[str]
    started_at: float = field(default_factory=time.time)
    total_duration: float = 0.0
    progress: int = 0
    outcome: AdapterEvent | None = None
    events: queue.Queue = field(default_factory=queue.Queue)
    thread: threading.Thread | None = None

    @property
    def finished(self) -> bool:
        return self.outcome is not None

    def iter_events(self, timeout: float | None = None) -> Iterator[AdapterEvent]:
        """Yield events in emission order until the terminal one."""
        while True:
            event = self.events.get(timeout=timeout)
            yield event
            if isinstance(event, (Completed, Failed)):
                return


def redact_command(command: list[str]) -> str:
    safe: list[str] = []
    hide_next = False
    for item in command:
        if hide_next:
            safe.append("******")
            hide_next = False
            continue
        safe.append(item)
        hide_next = item in _SECRET_FLAGS
    return shlex.join(safe)


def parse_output_path_from_line(clean_line: str) -> str:
    if "Destination:" in clean_line:
        return clean_line.split("Destination:", 1)[1].strip()
    if "Merging formats into" in clean_line:
        return clean_line.split("Merging formats into", 1)[1].strip().strip('"')
    if clean_line.startswith("[download]") and clean_line.endswith("has already been downloaded"):
        return clean_line[len("[download]") : -len("has already been downloaded")].strip()
    return ""


def _pick_error_text(lines: deque[str], tool: str, return_code: int) -> str:
    for line in reversed(lines):
        lowered = line.lower()
        if any(token in lowered for token in _ERROR_LINE_TOKENS):
            return line
    if lines:
        return lines[-1]
    return f"{tool} exited with {return_code}"


def _stop_process(process) -> None:
    try:
        process.kill()
    except OSError:
        pass
    try:
        process.wait(timeout=PROCESS_STOP_TIMEOUT_SECONDS)
    except (OSError, subprocess.TimeoutExpired):
        logger.warning("Process %s did not exit after kill", getattr(process, "pid", "?"))


class ProcessAdapter:
    """Runs one external media operation and reports its lifecycle as events.

    Transcoding kinds need ffmpeg, downloads need yt-dlp. Tools are resolved
    once, at construction; a missing tool makes every run for that kind fail
    with ``ToolUnavailable`` before anything is spawned.
    """

    def __init__(
        self,
        *,
        ffmpeg_path: str | None = None,
        ffprobe_path: str | None = None,
        downloader_prefix: list[str] | None = None,
        probe: MediaProbe | None = None,
        popen_factory: PopenFactory = subprocess.Popen,
    ) -> None:
        self._ffmpeg_path = str(ffmpeg_path or "").strip() or None
        self._downloader_prefix = list(downloader_prefix) if downloader_prefix else None
        self._probe = probe if probe is not None else MediaProbe(ffprobe_path)
        self._popen_factory = popen_factory

    @classmethod
    def from_config(cls, config: AppConfig) -> ProcessAdapter:
        ffmpeg_path = resolve_binary("ffmpeg", config.ffmpeg_path)
        ffprobe_path = resolve_binary("ffprobe", config.ffprobe_path)
        downloader_prefix = resolve_ytdlp_prefix(config.ytdlp_binary)
        logger.info(
            "Tools: ffmpeg=%s ffprobe=%s yt-dlp=%s",
            ffmpeg_path or "missing",
            ffprobe_path or "missing",
            shlex.join(downloader_prefix) if downloader_prefix else "missing",
        )
        return cls(
            ffmpeg_path=ffmpeg_path,
            ffprobe_path=ffprobe_path,
            downloader_prefix=downloader_prefix,
        )

    @property
    def ffmpeg_path(self) -> str | None:
        return self._ffmpeg_path

    @property
    def probe(self) -> MediaProbe:
        return self._probe

    def tool_for(self, kind: JobKind) -> str:
        return "yt-dlp" if kind is JobKind.DOWNLOAD else "ffmpeg"

    def is_available(self, kind: JobKind) -> bool:
        if kind is JobKind.DOWNLOAD:
            return self._downloader_prefix is not None
        return self._ffmpeg_path is not None

    def ensure_available(self, kind: JobKind) -> None:
        if not self.is_available(kind):
            raise ToolUnavailable(self.tool_for(kind))

    def build_command(self, job: Job) -> list[str]:
        self.ensure_available(job.kind)
        params = job.params
        if isinstance(params, MergeParams):
            return [
                self._ffmpeg_path,
                "-hide_banner",
                "-y",
                "-i",
                params.video_path,
                "-i",
                params.audio_path,
                "-c:v",
                "copy",
                "-c:a",
                MERGE_AUDIO_CODEC,
                "-map",
                "0:v:0",
                "-map",
                "1:a:0",
                "-shortest",
                params.output_path,
            ]
        if isinstance(params, ExtractAudioParams):
            return [
                self._ffmpeg_path,
                "-hide_banner",
                "-y",
                "-i",
                params.video_path,
                "-vn",
                "-c:a",
                EXTRACT_AUDIO_CODEC,
                "-b:a",
                EXTRACT_AUDIO_BITRATE,
                params.output_path,
            ]
        if isinstance(params, RemoveAudioParams):
            return [
                self._ffmpeg_path,
                "-hide_banner",
                "-y",
                "-i",
                params.video_path,
                "-an",
                "-c:v",
                "copy",
                params.output_path,
            ]
        if isinstance(params, DownloadParams):
            return build_download_command(
                params,
                downloader_prefix=self._downloader_prefix or [],
                ffmpeg_path=self._ffmpeg_path,
            )
        raise TypeError(f"Unsupported params: {type(params).__name__}")

    def start(self, job: Job) -> ProcessRun:
        """Submit ``job`` and return immediately; events arrive on ``run.events``."""
        command = self.build_command(job)
        run = ProcessRun(job_id=job.job_id, tool=self.tool_for(job.kind), command=command)
        thread = threading.Thread(
            target=self._supervise,
            args=(job, run),
            name=f"mediamux-job-{job.job_id}",
            daemon=True,
        )
        run.thread = thread
        thread.start()
        return run

    def run(self, job: Job, on_event: Callable[[AdapterEvent], None] | None = None) -> str:
        """Blocking variant of ``start``. Returns the output location."""
        process_run = self.start(job)
        for event in process_run.iter_events():
            if on_event is not None:
                on_event(event)
            if isinstance(event, Failed):
                raise ProcessFailed(event.reason)
            if isinstance(event, Completed):
                return event.output_location
        raise ProcessFailed("Process ended without a result")

    def _input_paths(self, job: Job) -> list[str]:
        params = job.params
        if isinstance(params, MergeParams):
            return [params.video_path, params.audio_path]
        if isinstance(params, (ExtractAudioParams, RemoveAudioParams)):
            return [params.video_path]
        return []

    def _total_duration(self, job: Job) -> float:
        params = job.params
        if isinstance(params, DownloadParams):
            return float(params.duration_seconds or 0.0)
        if not self._probe.available:
            logger.info("ffprobe missing; job %s progress falls back to explicit signals", job.job_id)
            return 0.0
        if isinstance(params, MergeParams):
            # Output ends with the shorter stream.
            total = merged_duration(
                self._probe.duration_or_none(params.video_path),
                self._probe.duration_or_none(params.audio_path),
            )
            return float(total or 0.0)
        return float(self._probe.duration_or_none(params.video_path) or 0.0)

    @staticmethod
    def _prepare_output(job: Job) -> None:
        params = job.params
        if isinstance(params, DownloadParams):
            Path(params.output_folder).expanduser().mkdir(parents=True, exist_ok=True)
            return
        Path(params.output_path).expanduser().parent.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _default_output_location(job: Job) -> str:
        params = job.params
        if isinstance(params, DownloadParams):
            return str(Path(params.output_folder).expanduser())
        return str(params.output_path)

    def _finish(self, run: ProcessRun, event: AdapterEvent) -> None:
        run.outcome = event
        run.events.put(event)

    def _emit_progress(self, run: ProcessRun, estimator: ProgressEstimator, **signal: object) -> None:
        before = estimator.value
        after = estimator.update(**signal)
        if after != before:
            run.progress = after
            run.events.put(Progress(run.job_id, after))

    def _supervise(self, job: Job, run: ProcessRun) -> None:
        try:
            missing = [path for path in self._input_paths(job) if not Path(path).expanduser().is_file()]
            if missing:
                self._finish(run, Failed(job.job_id, f"Input file not found: {missing[0]}"))
                return

            run.total_duration = self._total_duration(job)
            estimator = ProgressEstimator(run.total_duration)
            self._prepare_output(job)

            logger.info("Job %s: %s", job.job_id, redact_command(run.command))
            creationflags = subprocess.CREATE_NO_WINDOW if os.name == "nt" else 0
            try:
                process = self._popen_factory(
                    run.command,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    stdin=subprocess.DEVNULL,
                    text=True,
                    encoding="utf-8",
                    errors="replace",
                    bufsize=1,
                    creationflags=creationflags,
                )
            except OSError as exc:
                self._finish(run, Failed(job.job_id, f"Could not start {run.tool}: {exc}"))
                return

            run.events.put(Started(job.job_id, tuple(run.command)))
            output_location = ""
            tail: deque[str] = deque(maxlen=ERROR_TAIL_LINES)
            try:
                stream = process.stdout
                if stream is not None:
                    for raw_line in iter(stream.readline, ""):
                        clean = sanitize_error_text(raw_line)
                        if not clean:
                            continue
                        percent_match = _PERCENT_RE.search(clean)
                        if percent_match:
                            self._emit_progress(run, estimator, percent=float(percent_match.group("percent")))
                            continue
                        time_match = _TIMEMARK_RE.search(clean)
                        if time_match:
                            self._emit_progress(run, estimator, timemark=time_match.group("timemark"))
                            continue
                        tail.append(clean)
                        logger.debug("Job %s: %s", job.job_id, clean)
                        candidate = parse_output_path_from_line(clean)
                        if candidate:
                            output_location = candidate
                return_code = process.wait()
            except Exception:
                _stop_process(process)
                raise
            finally:
                if process.stdout is not None:
                    try:
                        process.stdout.close()
                    except OSError:
                        pass

            if return_code != 0:
                reason = _pick_error_text(tail, run.tool, return_code)
                logger.warning("Job %s failed (exit %s): %s", job.job_id, return_code, reason)
                self._finish(run, Failed(job.job_id, reason))
                return

            before = estimator.value
            run.progress = estimator.complete()
            if run.progress != before:
                run.events.put(Progress(job.job_id, run.progress))
            self._finish(run, Completed(job.job_id, output_location or self._default_output_location(job)))
        except Exception as exc:
            logger.exception("Job %s supervisor crashed", job.job_id)
            self._finish(run, Failed(job.job_id, sanitize_error_text(exc) or type(exc).__name__))
