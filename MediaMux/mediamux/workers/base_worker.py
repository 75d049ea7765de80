from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from PySide6.QtCore import QObject, Signal

logger = logging.getLogger(__name__)


class BaseWorker(QObject):
    """One blocking lookup (metadata, probe, thumbnail) run on a QThread.

    ``finishedSummary`` always carries a ``(key, payload)`` tuple, where
    ``key`` is whatever the lookup was for (a URL or a probe role).
    ``statusChanged`` and ``errorRaised`` carry the worker ``name`` first.
    Status values are ``running``, ``done`` and ``error``; subclasses may add
    their own.
    """

    name = "worker"

    statusChanged = Signal(str, str)
    logChanged = Signal(str)
    errorRaised = Signal(str, str)
    finishedSummary = Signal(object)
    finished = Signal()

    def __init__(self, key: str) -> None:
        super().__init__()
        self.key = str(key or "").strip()
        self._stop_event = threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def is_cancelled(self) -> bool:
        return self._stop_event.is_set()

    def set_status(self, status: str) -> None:
        self.statusChanged.emit(self.name, status)

    def emit_summary(self, payload: object) -> None:
        self.finishedSummary.emit((self.key, payload))

    def report_error(self, message: str) -> None:
        self.set_status("error")
        self.errorRaised.emit(self.name, message)

    def run_guarded(
        self,
        *,
        execute: Callable[[], Any],
        on_error: Callable[[Exception], None] | None = None,
    ) -> None:
        """Run ``execute`` and publish its result as this worker's summary.

        A ``None`` result publishes nothing. Failures are logged; ``on_error``
        decides what the UI sees, otherwise the message goes to
        ``errorRaised``. Nothing is reported once the worker was stopped.
        ``finished`` is emitted in every case.
        """
        try:
            if self.is_cancelled():
                return
            self.set_status("running")
            result = execute()
        except Exception as exc:
            if self.is_cancelled():
                logger.debug("%s worker for %s stopped: %s", self.name, self.key, exc)
            elif on_error is None:
                logger.exception("%s worker failed for %s", self.name, self.key)
                self.report_error(str(exc) or type(exc).__name__)
            else:
                logger.warning("%s worker failed for %s: %s", self.name, self.key, exc)
                on_error(exc)
        else:
            if result is not None and not self.is_cancelled():
                self.set_status("done")
                self.emit_summary(result)
        finally:
            self.finished.emit()
