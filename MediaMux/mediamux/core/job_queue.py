from __future__ import annotations

import itertools
import logging
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import replace
from typing import Protocol

from .errors import InvalidState
from .formatting import failure_title, sanitize_error_text, success_message
from .job_params import validate_params
from .models import (
    Completed,
    Failed,
    Job,
    JobKind,
    JobParams,
    JobState,
    Progress,
    Severity,
    Started,
)
from .process_adapter import ProcessRun

_ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    JobState.PENDING.value: frozenset({JobState.PROCESSING.value}),
    JobState.PROCESSING.value: frozenset({JobState.COMPLETED.value, JobState.FAILED.value}),
    JobState.COMPLETED.value: frozenset(),
    JobState.FAILED.value: frozenset(),
}

logger = logging.getLogger(__name__)


class JobRunner(Protocol):
    def start(self, job: Job) -> ProcessRun: ...


class QueueListener(Protocol):
    def on_progress(self, job_id: int, percent: int) -> None: ...

    def on_state_changed(self, job_id: int, state: str, error: str) -> None: ...


class HistorySink(Protocol):
    def record_history(self, output_path: str, kind: str) -> None: ...

    def notify(self, title: str, message: str, severity: str) -> None: ...


SpawnFn = Callable[..., object]


def spawn_thread(target: Callable[..., object], *args: object) -> threading.Thread:
    thread = threading.Thread(target=target, args=args, name="mediamux-queue", daemon=True)
    thread.start()
    return thread


class JobQueue:
    """Ordered job list with single-flight execution.

    Pending jobs run strictly in enqueue order and at most one job is
    processing at any time. Every state change goes through ``_transition``.
    Adapter events for the active job are consumed by one loop per job, run
    through ``spawn`` (a background thread by default).
    """

    def __init__(
        self,
        adapter: JobRunner,
        *,
        listener: QueueListener | None = None,
        sink: HistorySink | None = None,
        spawn: SpawnFn = spawn_thread,
    ) -> None:
        self._adapter = adapter
        self._listener = listener
        self._sink = sink
        self._spawn = spawn
        self._cond = threading.Condition()
        # Held across a state change and its listener calls so events never interleave.
        self._emit_lock = threading.RLock()
        self._jobs: dict[int, Job] = {}
        self._pending: deque[int] = deque()
        self._ids = itertools.count(1)
        self._running = False
        self.active_job_id: int | None = None

    @property
    def is_running(self) -> bool:
        with self._cond:
            return self._running

    @property
    def pending_count(self) -> int:
        with self._cond:
            return len(self._pending)

    def jobs(self) -> list[Job]:
        with self._cond:
            return [replace(job) for job in self._jobs.values()]

    def get(self, job_id: int) -> Job | None:
        with self._cond:
            job = self._jobs.get(job_id)
            return replace(job) if job is not None else None

    def enqueue(self, kind: JobKind | str, params: JobParams) -> int:
        key = validate_params(kind, params)
        with self._emit_lock:
            with self._cond:
                job_id = next(self._ids)
                self._jobs[job_id] = Job(job_id=job_id, kind=key, params=params)
                self._pending.append(job_id)
            self._emit_state(job_id, JobState.PENDING.value, "")
        logger.info("Queued job %s (%s)", job_id, key.value)
        return job_id

    def start(self) -> None:
        with self._cond:
            self._running = True
        self._advance()

    def pause(self) -> None:
        with self._cond:
            self._running = False
            self._cond.notify_all()
        logger.info("Queue paused")

    def remove(self, job_id: int) -> None:
        with self._cond:
            job = self._jobs.get(job_id)
            if job is None or job.state != JobState.PENDING.value:
                raise InvalidState(job_id, job.state if job is not None else "")
            del self._jobs[job_id]
            self._pending.remove(job_id)
            self._cond.notify_all()
        logger.info("Removed job %s", job_id)

    def clear(self) -> int:
        with self._cond:
            keep = self.active_job_id
            removed = [job_id for job_id in self._jobs if job_id != keep]
            for job_id in removed:
                del self._jobs[job_id]
            self._pending.clear()
            self._cond.notify_all()
        if removed:
            logger.info("Cleared %s job(s)", len(removed))
        return len(removed)

    def wait_idle(self, timeout: float | None = None) -> bool:
        with self._cond:
            return self._cond.wait_for(self._is_idle_locked, timeout)

    def _is_idle_locked(self) -> bool:
        return self.active_job_id is None and (not self._running or not self._pending)

    def _transition(
        self,
        job: Job,
        state: str,
        *,
        error: str = "",
        output_location: str = "",
    ) -> None:
        # Caller holds the lock.
        if state not in _ALLOWED_TRANSITIONS.get(job.state, frozenset()):
            raise InvalidState(job.job_id, job.state, f"Job {job.job_id} cannot move from {job.state} to {state}")
        job.state = state
        if state == JobState.PROCESSING.value:
            job.progress = 0
            self.active_job_id = job.job_id
        elif state == JobState.COMPLETED.value:
            job.progress = 100
            job.output_location = output_location
        elif state == JobState.FAILED.value:
            job.error = error
        self._cond.notify_all()

    def _release(self, job_id: int) -> None:
        with self._cond:
            if self.active_job_id == job_id:
                self.active_job_id = None
            self._cond.notify_all()

    def _advance(self) -> None:
        while True:
            with self._emit_lock:
                with self._cond:
                    if not self._running or self.active_job_id is not None or not self._pending:
                        return
                    job = self._jobs[self._pending.popleft()]
                    self._transition(job, JobState.PROCESSING.value)
                    snapshot = replace(job)
                self._emit_state(job.job_id, JobState.PROCESSING.value, "")
            logger.info("Starting job %s (%s)", job.job_id, job.kind.value)
            try:
                run = self._adapter.start(snapshot)
            except Exception as exc:
                logger.warning("Job %s could not start: %s", job.job_id, exc)
                self._fail(job.job_id, str(exc) or type(exc).__name__)
                continue
            self._spawn(self._consume, job.job_id, run)
            return

    def _consume(self, job_id: int, run: ProcessRun) -> None:
        try:
            for event in run.iter_events():
                if isinstance(event, Started):
                    logger.debug("Job %s process started", job_id)
                elif isinstance(event, Progress):
                    self._apply_progress(job_id, event.percent)
                elif isinstance(event, Completed):
                    self._complete(job_id, event.output_location)
                elif isinstance(event, Failed):
                    self._fail(job_id, event.reason)
        except Exception as exc:
            logger.exception("Event loop for job %s failed", job_id)
            self._fail(job_id, str(exc) or type(exc).__name__)
        finally:
            self._advance()

    def _apply_progress(self, job_id: int, percent: int) -> None:
        with self._emit_lock:
            with self._cond:
                job = self._jobs.get(job_id)
                if job is None or self.active_job_id != job_id or job.state != JobState.PROCESSING.value:
                    return
                value = max(job.progress, min(100, max(0, int(percent))))
                if value == job.progress:
                    return
                job.progress = value
            self._emit_progress(job_id, value)

    def _complete(self, job_id: int, output_location: str) -> None:
        with self._emit_lock:
            with self._cond:
                job = self._jobs.get(job_id)
                if job is None or job.state != JobState.PROCESSING.value:
                    return
                jumped = job.progress < 100
                self._transition(job, JobState.COMPLETED.value, output_location=output_location)
                kind = job.kind
            if jumped:
                self._emit_progress(job_id, 100)
            self._emit_state(job_id, JobState.COMPLETED.value, "")
            logger.info("Job %s completed: %s", job_id, output_location)
            self._deliver("record_history", output_location, kind.value)
            self._deliver("notify", success_message(kind), output_location, Severity.SUCCESS.value)
            # The next job may only be picked once the terminal events are out.
            self._release(job_id)

    def _fail(self, job_id: int, reason: str) -> None:
        error = sanitize_error_text(reason) or "Unknown error"
        with self._emit_lock:
            with self._cond:
                job = self._jobs.get(job_id)
                if job is None or job.state != JobState.PROCESSING.value:
                    return
                self._transition(job, JobState.FAILED.value, error=error)
                kind = job.kind
            self._emit_state(job_id, JobState.FAILED.value, error)
            logger.warning("Job %s failed: %s", job_id, error)
            self._deliver("notify", failure_title(kind), error, Severity.ERROR.value)
            self._release(job_id)

    def _emit_progress(self, job_id: int, percent: int) -> None:
        if self._listener is None:
            return
        try:
            self._listener.on_progress(job_id, percent)
        except Exception:
            logger.exception("Progress listener failed for job %s", job_id)

    def _emit_state(self, job_id: int, state: str, error: str) -> None:
        if self._listener is None:
            return
        try:
            self._listener.on_state_changed(job_id, state, error)
        except Exception:
            logger.exception("State listener failed for job %s", job_id)

    def _deliver(self, method: str, *args: str) -> None:
        if self._sink is None:
            return
        try:
            getattr(self._sink, method)(*args)
        except Exception:
            logger.exception("History sink %s failed", method)
