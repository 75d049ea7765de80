from .error_policy import classify_exception, classify_failure, failure_hint, format_classified_error

__all__ = [
    "classify_exception",
    "classify_failure",
    "failure_hint",
    "format_classified_error",
]
