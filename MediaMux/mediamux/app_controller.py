from __future__ import annotations

import logging
from collections.abc import Mapping

from PySide6.QtCore import QObject, QThread, Qt, Signal

from .controller.error_policy import classify_failure, failure_hint
from .core.config import AppConfig, load_config, save_config
from .core.format_resolver import fetch_media_info
from .core.formatting import default_output_path
from .core.history import RecentFiles
from .core.job_params import build_params
from .core.job_queue import JobQueue
from .core.media_probe import compare_durations
from .core.models import DurationComparison, Job, JobKind, JobState, RecentFileEntry
from .core.process_adapter import ProcessAdapter
from .workers.base_worker import BaseWorker
from .workers.media_probe_worker import MediaProbeWorker
from .workers.metadata_worker import MetadataWorker
from .workers.queue_bridge import QueueSignalBridge
from .workers.thumbnail_worker import ThumbnailWorker

logger = logging.getLogger(__name__)


class AppController(QObject):
    jobProgress = Signal(int, int)
    jobStateChanged = Signal(int, str, str)
    notificationRaised = Signal(str, str, str)
    historyChanged = Signal()
    mediaInfoReady = Signal(str, object)
    passwordRequired = Signal(str)
    metadataFailed = Signal(str, str)
    probeReady = Signal(str, object)
    thumbnailReady = Signal(str, object)
    logChanged = Signal(str)
    workerStatusChanged = Signal(str, str)

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        adapter: ProcessAdapter | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self.config = config if config is not None else load_config()
        self.history = RecentFiles(
            max(1, self.config.recent_files_limit),
            enabled=(not self.config.disable_history) and self.config.recent_files_limit > 0,
        )
        self.adapter = adapter if adapter is not None else ProcessAdapter.from_config(self.config)
        self.bridge = QueueSignalBridge(self.history, notifications_enabled=self.config.notify_on_completion)
        self.queue = JobQueue(self.adapter, listener=self.bridge, sink=self.bridge)
        self._threads: dict[str, QThread] = {}
        self._workers: dict[str, BaseWorker] = {}

        self.bridge.jobProgress.connect(self.jobProgress)
        self.bridge.jobStateChanged.connect(self.jobStateChanged)
        self.bridge.jobStateChanged.connect(self._on_job_state_changed)
        self.bridge.notificationRaised.connect(self.notificationRaised)
        self.bridge.historyRecorded.connect(self._on_history_recorded)

    def tool_status(self) -> dict[str, bool]:
        return {
            "ffmpeg": self.adapter.is_available(JobKind.MERGE),
            "ffprobe": self.adapter.probe.available,
            "yt-dlp": self.adapter.is_available(JobKind.DOWNLOAD),
        }

    def submit(self, kind: JobKind | str, values: Mapping[str, object]) -> int:
        params = build_params(kind, values)
        job_id = self.queue.enqueue(kind, params)
        if self.config.auto_start_queue:
            self.queue.start()
        return job_id

    def start_queue(self) -> None:
        self.queue.start()

    def pause_queue(self) -> None:
        self.queue.pause()

    def remove_job(self, job_id: int) -> None:
        self.queue.remove(job_id)

    def clear_jobs(self) -> int:
        return self.queue.clear()

    def jobs(self) -> list[Job]:
        return self.queue.jobs()

    def recent_files(self) -> list[RecentFileEntry]:
        return self.history.entries()

    def clear_history(self) -> None:
        self.history.clear()
        self.historyChanged.emit()

    def suggest_output_path(self, kind: JobKind | str, input_path: str) -> str:
        return default_output_path(kind, input_path)

    def compare_durations(self, video_seconds: float | None, audio_seconds: float | None) -> DurationComparison | None:
        return compare_durations(video_seconds, audio_seconds)

    def set_download_location(self, path: str) -> bool:
        value = str(path or "").strip()
        if not value:
            return False
        self.config.download_location = value
        saved = save_config(self.config)
        if saved is None:
            self.logChanged.emit("Could not save settings.")
            return False
        return True

    def fetch_metadata(self, url: str, *, password: str = "") -> bool:
        worker = MetadataWorker(
            url,
            password=password,
            timeout_seconds=self.config.metadata_timeout_seconds,
            fetch=fetch_media_info,
        )
        worker.finishedSummary.connect(self._on_metadata_summary, Qt.ConnectionType.QueuedConnection)
        worker.passwordRequired.connect(self.passwordRequired, Qt.ConnectionType.QueuedConnection)
        worker.errorRaised.connect(self._on_metadata_error, Qt.ConnectionType.QueuedConnection)
        return self._start_worker("metadata", worker, url)

    def probe_file(self, path: str, *, role: str = "video") -> bool:
        worker = MediaProbeWorker(self.adapter.probe, path, role=role)
        worker.finishedSummary.connect(self._on_probe_summary, Qt.ConnectionType.QueuedConnection)
        return self._start_worker(f"probe:{role}", worker, path)

    def fetch_thumbnail(self, url: str) -> bool:
        worker = ThumbnailWorker(url)
        worker.finishedSummary.connect(self._on_thumbnail_summary, Qt.ConnectionType.QueuedConnection)
        return self._start_worker("thumbnail", worker, url)

    def shutdown(self, *, timeout_ms: int = 1500) -> bool:
        self.queue.pause()
        for worker in list(self._workers.values()):
            worker.stop()
        clean = True
        for thread in list(self._threads.values()):
            if not self._wait_for_thread_shutdown(thread, timeout_ms=timeout_ms):
                clean = False
        return clean

    def _start_worker(self, key: str, worker: BaseWorker, target: str) -> bool:
        previous = self._workers.get(key)
        if previous is not None:
            previous.stop()
        thread = QThread(self)
        worker.moveToThread(thread)
        worker.statusChanged.connect(self.workerStatusChanged, Qt.ConnectionType.QueuedConnection)
        worker.logChanged.connect(self.logChanged, Qt.ConnectionType.QueuedConnection)
        thread.started.connect(worker.run)
        worker.finished.connect(thread.quit)
        worker.finished.connect(worker.deleteLater)
        thread.finished.connect(thread.deleteLater)
        thread.finished.connect(lambda k=key, t=thread: self._forget_thread(k, t))
        self._threads[key] = thread
        self._workers[key] = worker
        logger.debug("Starting %s worker for %s", key, target)
        thread.start()
        return True

    def _forget_thread(self, key: str, thread: QThread) -> None:
        if self._threads.get(key) is thread:
            self._threads.pop(key, None)
            self._workers.pop(key, None)

    @staticmethod
    def _wait_for_thread_shutdown(thread: QThread | None, *, timeout_ms: int) -> bool:
        if thread is None:
            return True
        try:
            if not thread.isRunning():
                return True
            thread.quit()
            return bool(thread.wait(max(0, int(timeout_ms))))
        except RuntimeError:
            return True

    def _on_job_state_changed(self, job_id: int, state: str, error: str) -> None:
        if state != JobState.FAILED.value or not error:
            return
        category, _retryable = classify_failure(error)
        self.logChanged.emit(f"Job {job_id} failed ({category}): {error}")
        self.logChanged.emit(failure_hint(category))

    def _on_history_recorded(self, _output_path: str, _kind: str) -> None:
        self.historyChanged.emit()

    def _on_metadata_summary(self, payload: object) -> None:
        if not isinstance(payload, tuple) or len(payload) != 2:
            return
        url, info = payload
        self.mediaInfoReady.emit(str(url or ""), info)
        thumbnail_url = str(getattr(info, "thumbnail_url", "") or "")
        if thumbnail_url:
            self.fetch_thumbnail(thumbnail_url)

    def _on_metadata_error(self, _source: str, message: str) -> None:
        category, _retryable = classify_failure(message)
        self.metadataFailed.emit(str(message or ""), failure_hint(category))

    def _on_probe_summary(self, payload: object) -> None:
        if not isinstance(payload, tuple) or len(payload) != 2:
            return
        role, result = payload
        self.probeReady.emit(str(role or ""), result)

    def _on_thumbnail_summary(self, payload: object) -> None:
        if not isinstance(payload, tuple) or len(payload) != 2:
            return
        url, data = payload
        if data:
            self.thumbnailReady.emit(str(url or ""), bytes(data))
