from __future__ import annotations

import threading
import time
from collections import Counter, deque
from typing import NamedTuple


# Bounded so a busy process keeps only recent call history.
_MAX_SAMPLES = 10000


class CallSample(NamedTuple):
    at: float
    integration: str
    latency_ms: float
    ok: bool


class _Telemetry:
    """Process-local counters plus a rolling window of store and sink calls."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Counter[str] = Counter()
        self._samples: deque[CallSample] = deque(maxlen=_MAX_SAMPLES)

    def count(self, name: str, value: int) -> None:
        with self._lock:
            self._counters[name] += value

    def sample(self, integration: str, latency_ms: float, ok: bool) -> None:
        with self._lock:
            self._samples.append(CallSample(time.time(), integration, latency_ms, ok))

    def counters(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counters)

    def window(self, window_s: int) -> list[CallSample]:
        cutoff = time.time() - window_s
        with self._lock:
            return [sample for sample in self._samples if sample.at >= cutoff]

    def clear(self) -> None:
        with self._lock:
            self._counters.clear()
            self._samples.clear()


_telemetry = _Telemetry()


def record_external_call(*, integration: str, latency_ms: float, success: bool) -> None:
    _telemetry.sample(integration, latency_ms, success)


def increment_counter(name: str, value: int = 1) -> None:
    _telemetry.count(name, value)


def get_counters() -> dict[str, int]:
    return _telemetry.counters()


def external_call_summary(window_s: int) -> dict[str, dict[str, float]]:
    # calls, failures and worst latency per integration inside the window
    summary: dict[str, dict[str, float]] = {}
    for sample in _telemetry.window(window_s):
        stats = summary.setdefault(sample.integration, {"calls": 0.0, "failures": 0.0, "max_latency_ms": 0.0})
        stats["calls"] += 1
        stats["failures"] += 0 if sample.ok else 1
        stats["max_latency_ms"] = max(stats["max_latency_ms"], sample.latency_ms)
    return summary


def reset_telemetry() -> None:
    _telemetry.clear()
