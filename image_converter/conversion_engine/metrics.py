"""In-process counters and timings for scans and conversion runs.

Scanner skips and pipeline outcomes are counted here so tests and the CLI's
debug output can see what a run did without parsing logs.

Usage:
    from image_converter.conversion_engine.metrics import metrics
    metrics.inc("pipeline.jobs_succeeded")
    with metrics.timed("pipeline.job_duration"):
        ...
    metrics.timing("pipeline.job_duration")  # Timing(count, total, longest)
"""

from __future__ import annotations

import time
from collections import Counter
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from threading import Lock
from typing import Any


@dataclass(frozen=True)
class Timing:
    count: int = 0
    total: float = 0.0
    longest: float = 0.0

    @property
    def mean(self) -> float:
        return self.total / self.count if self.count else 0.0

    def add(self, elapsed: float) -> Timing:
        return Timing(self.count + 1, self.total + elapsed, max(self.longest, elapsed))


class _Metrics:
    def __init__(self) -> None:
        self._counters: Counter[str] = Counter()
        self._timings: dict[str, Timing] = {}
        self._lock = Lock()

    def inc(self, key: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[key] += int(amount)

    @contextmanager
    def timed(self, key: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed = time.perf_counter() - start
            with self._lock:
                self._timings[key] = self._timings.get(key, Timing()).add(elapsed)

    def counter(self, key: str) -> int:
        with self._lock:
            return self._counters[key]

    def timing(self, key: str) -> Timing:
        with self._lock:
            return self._timings.get(key, Timing())

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {"counters": dict(self._counters), "timings": dict(self._timings)}

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._timings.clear()


metrics = _Metrics()
