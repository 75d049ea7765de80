from __future__ import annotations

from PySide6.QtCore import QObject, Signal

from ..core.history import RecentFiles


class QueueSignalBridge(QObject):
    """Relays queue callbacks as Qt signals.

    The queue calls these methods from its event thread; connected slots in
    the GUI thread receive them through queued connections.
    """

    jobProgress = Signal(int, int)
    jobStateChanged = Signal(int, str, str)
    notificationRaised = Signal(str, str, str)
    historyRecorded = Signal(str, str)

    def __init__(self, history: RecentFiles | None = None, *, notifications_enabled: bool = True) -> None:
        super().__init__()
        self._history = history
        self._notifications_enabled = bool(notifications_enabled)

    def on_progress(self, job_id: int, percent: int) -> None:
        self.jobProgress.emit(int(job_id), int(percent))

    def on_state_changed(self, job_id: int, state: str, error: str) -> None:
        self.jobStateChanged.emit(int(job_id), str(state), str(error or ""))

    def record_history(self, output_path: str, kind: str) -> None:
        if self._history is not None:
            self._history.add(output_path, kind)
        self.historyRecorded.emit(str(output_path or ""), str(kind or ""))

    def notify(self, title: str, message: str, severity: str) -> None:
        if not self._notifications_enabled:
            return
        self.notificationRaised.emit(str(title or ""), str(message or ""), str(severity or ""))
