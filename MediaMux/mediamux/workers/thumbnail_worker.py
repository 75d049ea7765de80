from __future__ import annotations

import requests

from .base_worker import BaseWorker

THUMBNAIL_TIMEOUT_SECONDS = 8.0
THUMBNAIL_MAX_BYTES = 5 * 1024 * 1024
THUMBNAIL_CHUNK_BYTES = 65536


def fetch_thumbnail_bytes(url: str, is_cancelled=lambda: False) -> bytes:
    if not url:
        return b""
    with requests.get(url, stream=True, timeout=THUMBNAIL_TIMEOUT_SECONDS) as response:
        response.raise_for_status()
        content_type = str(response.headers.get("content-type") or "").lower()
        if content_type and "image" not in content_type:
            return b""
        chunks: list[bytes] = []
        total = 0
        for chunk in response.iter_content(chunk_size=THUMBNAIL_CHUNK_BYTES):
            if is_cancelled():
                return b""
            if not chunk:
                continue
            total += len(chunk)
            if total > THUMBNAIL_MAX_BYTES:
                return b""
            chunks.append(chunk)
    return b"".join(chunks)


class ThumbnailWorker(BaseWorker):
    name = "thumbnail"

    def run(self) -> None:
        def on_error(exc: Exception) -> None:
            self.report_error(str(exc))
            self.emit_summary(b"")

        self.run_guarded(
            execute=lambda: fetch_thumbnail_bytes(self.key, self.is_cancelled),
            on_error=on_error,
        )
