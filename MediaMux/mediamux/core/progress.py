from __future__ import annotations

import math
import re

TIMEMARK_CAP_PERCENT = 95.0

_TIMEMARK_RE = re.compile(r"^\s*(?P<h>\d+):(?P<m>\d{1,2}):(?P<s>\d{1,2}(?:\.\d+)?)\s*$")


def parse_timemark(value: str) -> float | None:
    match = _TIMEMARK_RE.match(str(value or ""))
    if not match:
        return None
    try:
        hours = float(match.group("h"))
        minutes = float(match.group("m"))
        seconds = float(match.group("s"))
    except ValueError:
        return None
    return hours * 3600.0 + minutes * 60.0 + seconds


def _clamp_percent(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return max(0.0, min(100.0, value))


class ProgressEstimator:
    """Turns whatever progress signal a process exposes into one 0-100 integer.

    An explicit percentage wins. An elapsed timemark is only usable when the
    total duration is known, and is capped at 95 so that 100 is reserved for
    confirmed completion. The reported value never goes down.
    """

    def __init__(self, total_duration: float = 0.0) -> None:
        self._total_duration = 0.0
        self._value = 0
        self.set_total_duration(total_duration)

    @property
    def value(self) -> int:
        return self._value

    @property
    def total_duration(self) -> float:
        return self._total_duration

    def set_total_duration(self, seconds: float | None) -> None:
        try:
            total = float(seconds or 0.0)
        except (TypeError, ValueError):
            total = 0.0
        self._total_duration = total if math.isfinite(total) and total > 0 else 0.0

    def reset(self) -> None:
        self._value = 0

    def _estimate(self, percent: float | None, timemark: str | None) -> float:
        if percent is not None:
            return _clamp_percent(float(percent))
        if timemark and self._total_duration > 0:
            elapsed = parse_timemark(timemark)
            if elapsed is not None:
                return min(TIMEMARK_CAP_PERCENT, _clamp_percent(elapsed / self._total_duration * 100.0))
        return 0.0

    def update(self, *, percent: float | None = None, timemark: str | None = None) -> int:
        # half-up, 12.5 -> 13
        computed = int(math.floor(self._estimate(percent, timemark) + 0.5))
        if computed > self._value:
            self._value = computed
        return self._value

    def complete(self) -> int:
        self._value = 100
        return self._value
