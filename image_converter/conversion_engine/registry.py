"""Job model and the ordered job registry.

The registry is owned by a single writer at a time: the intake path while no
run is active, the pipeline while one is. The run-active flag is what keeps the
two apart, so no lock is taken here.
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum

from image_converter.logger import get_logger

from .errors import InvalidStateError

_logger = get_logger("registry")

_job_ids = itertools.count(1)


class JobStatus(Enum):
    PENDING = "pending"
    QUEUED = "queued"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)


# Terminal -> QUEUED is taken only when a new run starts.
_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.QUEUED}),
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.SUCCEEDED, JobStatus.FAILED}),
    JobStatus.SUCCEEDED: frozenset({JobStatus.QUEUED}),
    JobStatus.FAILED: frozenset({JobStatus.QUEUED}),
}


@dataclass(eq=False)
class Job:
    source_path: str
    status: JobStatus = JobStatus.PENDING
    id: int = field(default_factory=lambda: next(_job_ids))

    @property
    def name(self) -> str:
        return os.path.basename(self.source_path)


@dataclass
class RunSummary:
    total: int = 0
    succeeded: int = 0
    failed: int = 0

    @property
    def completed(self) -> int:
        return self.succeeded + self.failed

    @property
    def all_succeeded(self) -> bool:
        return self.failed == 0 and self.succeeded == self.total


class JobRegistry:
    def __init__(self) -> None:
        self._jobs: list[Job] = []
        self._by_id: dict[int, Job] = {}
        self._keys: set[str] = set()
        self._running = False
        self._summary = RunSummary()

    def __len__(self) -> int:
        return len(self._jobs)

    def __iter__(self) -> Iterator[Job]:
        return iter(list(self._jobs))

    @property
    def running(self) -> bool:
        return self._running

    @property
    def summary(self) -> RunSummary:
        return self._summary

    def all(self) -> tuple[Job, ...]:
        return tuple(self._jobs)

    def keys(self) -> frozenset[str]:
        """Canonical source paths of every registered job."""
        return frozenset(self._keys)

    def get(self, job_id: int) -> Job:
        return self._by_id[job_id]

    def status_of(self, job_id: int) -> JobStatus:
        return self._by_id[job_id].status

    # ---- intake ----------------------------------------------------
    def append(self, jobs: Iterable[Job]) -> int:
        """Append jobs in order; returns how many were actually added."""
        if self._running:
            _logger.warning("append ignored: a conversion run is active")
            return 0
        added = 0
        for job in jobs:
            if job.source_path in self._keys:
                _logger.debug("append skipped duplicate: %s", job.source_path)
                continue
            self._jobs.append(job)
            self._by_id[job.id] = job
            self._keys.add(job.source_path)
            added += 1
        return added

    def clear(self) -> None:
        if self._running:
            raise InvalidStateError("cannot clear jobs while a conversion run is active")
        self._jobs.clear()
        self._by_id.clear()
        self._keys.clear()
        self._summary = RunSummary()

    # ---- run path (pipeline only) ----------------------------------
    def set_status(self, job_id: int, status: JobStatus) -> None:
        job = self._by_id[job_id]
        if status not in _TRANSITIONS[job.status]:
            msg = f"job {job_id}: illegal status transition {job.status.value} -> {status.value}"
            if __debug__:
                raise InvalidStateError(msg)
            _logger.error(msg)
            return
        job.status = status

    def begin_run(self) -> None:
        if self._running:
            raise InvalidStateError("a conversion run is already active")
        self._running = True
        self._summary = RunSummary(total=len(self._jobs))

    def record(self, success: bool) -> None:
        if success:
            self._summary.succeeded += 1
        else:
            self._summary.failed += 1

    def end_run(self) -> None:
        self._running = False
