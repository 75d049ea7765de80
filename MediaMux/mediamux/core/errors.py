from __future__ import annotations


class MediaMuxError(RuntimeError):
    pass


class ToolUnavailable(MediaMuxError):
    def __init__(self, tool_name: str, message: str = "") -> None:
        self.tool_name = str(tool_name or "").strip()
        super().__init__(message or f"{self.tool_name} was not found. Install it or set its path in the config.")


class InvalidParams(MediaMuxError, ValueError):
    pass


class InvalidState(MediaMuxError):
    def __init__(self, job_id: int, state: str, message: str = "") -> None:
        self.job_id = job_id
        self.state = str(state or "")
        super().__init__(message or f"Job {job_id} is {self.state or 'unknown'}; only pending jobs can be removed.")


class ProbeFailed(MediaMuxError):
    pass


class MetadataFetchFailed(MediaMuxError):
    def __init__(self, url: str, message: str) -> None:
        self.url = str(url or "")
        super().__init__(message)


class PasswordRequired(MediaMuxError):
    def __init__(self, url: str, message: str = "") -> None:
        self.url = str(url or "")
        super().__init__(message or "This media is password protected.")


class ProcessFailed(MediaMuxError):
    def __init__(self, message: str, *, return_code: int | None = None) -> None:
        self.return_code = return_code
        super().__init__(message)
