from __future__ import annotations

from collections.abc import Callable

from PySide6.QtCore import Signal

from .base_worker import BaseWorker
from ..core.errors import PasswordRequired
from ..core.format_resolver import fetch_media_info
from ..core.models import RemoteMediaInfo

FetchFn = Callable[..., RemoteMediaInfo]


class MetadataWorker(BaseWorker):
    name = "metadata"

    passwordRequired = Signal(str)

    def __init__(
        self,
        url: str,
        *,
        password: str = "",
        timeout_seconds: float | None = None,
        fetch: FetchFn = fetch_media_info,
    ) -> None:
        super().__init__(url)
        self._password = str(password or "")
        self._timeout_seconds = timeout_seconds
        self._fetch = fetch

    def run(self) -> None:
        def on_error(exc: Exception) -> None:
            if isinstance(exc, PasswordRequired):
                self.set_status("password")
                self.passwordRequired.emit(self.key)
                return
            self.report_error(str(exc))

        self.run_guarded(
            execute=lambda: self._fetch(self.key, password=self._password, timeout_seconds=self._timeout_seconds),
            on_error=on_error,
        )
