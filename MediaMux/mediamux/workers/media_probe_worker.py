from __future__ import annotations

from .base_worker import BaseWorker
from ..core.media_probe import MediaProbe
from ..core.models import MediaProbeResult


class MediaProbeWorker(BaseWorker):
    name = "probe"

    def __init__(self, probe: MediaProbe, path: str, *, role: str = "video") -> None:
        super().__init__(str(role or "").strip() or "video")
        self._probe = probe
        self._path = str(path or "").strip()

    def run(self) -> None:
        def execute() -> MediaProbeResult | None:
            if not self._path:
                return None
            return self._probe.probe(self._path)

        def on_error(exc: Exception) -> None:
            # Probe data only feeds UI hints.
            self.set_status("error")
            self.logChanged.emit(f"Could not read {self._path}: {exc}")
            self.emit_summary(MediaProbeResult(path=self._path))

        self.run_guarded(execute=execute, on_error=on_error)
