from __future__ import annotations

from ..core.errors import InvalidParams, PasswordRequired, ProbeFailed, ToolUnavailable

_ERROR_PATTERNS: tuple[tuple[str, bool, tuple[str, ...]], ...] = (
    (
        "password",
        False,
        ("video password", "--video-password", "protected by a password"),
    ),
    (
        "rate_limit",
        True,
        ("429", "too many requests", "rate limit", "try again later"),
    ),
    (
        "network",
        True,
        (
            "timeout",
            "timed out",
            "connection reset",
            "connection refused",
            "network is unreachable",
            "temporarily unavailable",
            "service unavailable",
        ),
    ),
    (
        "authentication",
        False,
        ("sign in", "login", "username", "private", "members-only", "cookie"),
    ),
    (
        "unsupported",
        False,
        ("unsupported url", "unable to extract", "no video formats", "requested format is not available"),
    ),
    (
        "input",
        False,
        ("input file not found", "no such file", "invalid data found", "does not contain any stream"),
    ),
    (
        "codec",
        False,
        (
            "could not find tag for codec",
            "unknown encoder",
            "encoder not found",
            "codec not currently supported",
            "stream map",
            "matches no streams",
        ),
    ),
    (
        "filesystem",
        False,
        ("permission denied", "access is denied", "no space left", "disk full", "read-only file system"),
    ),
    (
        "dependency",
        False,
        ("ffmpeg", "ffprobe", "yt-dlp", "was not found"),
    ),
)

_FAILURE_HINTS: dict[str, str] = {
    "password": "This media is password protected. Enter the password and try again.",
    "rate_limit": "The site is rate-limiting requests. Wait a bit before retrying.",
    "network": "Network issue detected. Check the connection and retry.",
    "authentication": "This URL likely requires login or cookies.",
    "unsupported": "The downloader could not handle this URL. Try updating yt-dlp.",
    "input": "An input file is missing or unreadable. Pick the file again.",
    "codec": "The chosen files use streams this operation cannot copy. Try a different input.",
    "filesystem": "Output folder issue. Check write permissions and free space.",
    "dependency": "A required tool is missing. Install FFmpeg/yt-dlp or set their paths in the config.",
}

_CATEGORY_BY_ERROR_TYPE: tuple[tuple[type[Exception], str], ...] = (
    (PasswordRequired, "password"),
    (ToolUnavailable, "dependency"),
    (InvalidParams, "input"),
    (ProbeFailed, "input"),
)


def classify_failure(message: str) -> tuple[str, bool]:
    text = str(message or "").strip().lower()
    if not text:
        return "unknown", False
    for category, retryable, tokens in _ERROR_PATTERNS:
        if any(token in text for token in tokens):
            return category, retryable
    return "unknown", False


def classify_exception(exc: Exception) -> tuple[str, bool]:
    for error_type, category in _CATEGORY_BY_ERROR_TYPE:
        if isinstance(exc, error_type):
            return category, False
    return classify_failure(str(exc))


def format_classified_error(message: str) -> str:
    raw = str(message or "").strip()
    category, _retryable = classify_failure(raw)
    short = raw.replace("\r", " ").replace("\n", " ")
    if len(short) > 280:
        short = f"{short[:279]}..."
    return f"{category.upper()}: {short}" if short else category.upper()


def failure_hint(category: str) -> str:
    normalized = str(category or "").strip().lower()
    return _FAILURE_HINTS.get(normalized, "Unknown failure. Check the inputs and try again.")
