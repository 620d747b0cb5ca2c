"""Sequential conversion pipeline.

The pipeline walks the job registry in registration order and converts one
job at a time. Every job reaches exactly one terminal status; a failing job is
counted and the run carries on. The observer callback is invoked synchronously
after each status change, so callers see job *i*'s events before job *i+1*
starts.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from image_converter.logger import get_logger

from .converter import ConversionOutcome, convert_image, destination_for
from .errors import (
    AlreadyRunningError,
    ConversionError,
    ConversionStage,
    InvalidStateError,
    NothingToDoError,
)
from .formats import OutputFormat
from .metrics import metrics
from .registry import Job, JobRegistry, JobStatus, RunSummary

_logger = get_logger("pipeline")

ConvertFn = Callable[[str, str, OutputFormat], ConversionOutcome]


class RunState(Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass(frozen=True)
class ProgressEvent:
    job_id: int
    file_name: str
    status: JobStatus
    completed_index: int
    total_count: int

    @property
    def fraction(self) -> float:
        return self.completed_index / self.total_count if self.total_count else 0.0


EventCallback = Callable[[ProgressEvent], None]


class Pipeline:
    def __init__(self, registry: JobRegistry, convert_fn: ConvertFn = convert_image) -> None:
        self._registry = registry
        self._convert = convert_fn
        self._state = RunState.NOT_STARTED
        self._jobs: tuple[Job, ...] = ()
        self._destination_dir = ""
        self._format = OutputFormat.JPEG

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def summary(self) -> RunSummary:
        return self._registry.summary

    @property
    def output_format(self) -> OutputFormat:
        return self._format

    @property
    def destination_dir(self) -> str:
        return self._destination_dir

    def start(self, destination_dir: str | os.PathLike[str], fmt: OutputFormat) -> None:
        """Validate and arm a run; every job becomes QUEUED.

        Raises NothingToDoError for an empty registry and AlreadyRunningError if
        a run is active. Nothing is converted until ``process`` is called.
        """
        if self._state is RunState.RUNNING or self._registry.running:
            raise AlreadyRunningError("a conversion run is already active")
        if len(self._registry) == 0:
            raise NothingToDoError("no images to convert")

        self._registry.begin_run()
        self._jobs = self._registry.all()
        self._destination_dir = os.fspath(destination_dir)
        self._format = fmt
        try:
            for job in self._jobs:
                self._registry.set_status(job.id, JobStatus.QUEUED)
        except Exception:
            self._registry.end_run()
            raise
        self._state = RunState.RUNNING
        metrics.inc("pipeline.runs")
        _logger.info(
            "run started: %d job(s) -> %s (%s)", len(self._jobs), self._destination_dir, fmt.name
        )

    def process(self, on_event: EventCallback | None = None) -> RunSummary:
        """Convert every queued job in order and return the final tally."""
        if self._state is not RunState.RUNNING:
            raise InvalidStateError("run has not been started")

        total = len(self._jobs)
        summary = self._registry.summary
        try:
            for index, job in enumerate(self._jobs):
                self._registry.set_status(job.id, JobStatus.PROCESSING)
                self._emit(on_event, job, index, total)

                outcome = self._convert_one(job)

                status = JobStatus.SUCCEEDED if outcome.success else JobStatus.FAILED
                self._registry.set_status(job.id, status)
                self._registry.record(outcome.success)
                metrics.inc("pipeline.jobs_succeeded" if outcome.success else "pipeline.jobs_failed")
                self._emit(on_event, job, index + 1, total)
        finally:
            self._registry.end_run()
            self._state = RunState.COMPLETED

        _logger.info("run finished: %d succeeded, %d failed", summary.succeeded, summary.failed)
        return summary

    def run(
        self,
        destination_dir: str | os.PathLike[str],
        fmt: OutputFormat,
        on_event: EventCallback | None = None,
    ) -> RunSummary:
        self.start(destination_dir, fmt)
        return self.process(on_event)

    def _convert_one(self, job: Job) -> ConversionOutcome:
        with metrics.timed("pipeline.job_duration"):
            try:
                return self._convert(job.source_path, self._destination_dir, self._format)
            except Exception as e:
                # convert_fn is expected to report failures, not raise them;
                # contain anything that slips through to this job.
                _logger.exception("converter raised for %s", job.source_path)
                dest = destination_for(job.source_path, self._destination_dir, self._format)
                return ConversionOutcome(
                    job.source_path, str(dest), False, ConversionError(ConversionStage.ENCODE, str(e))
                )

    @staticmethod
    def _emit(on_event: EventCallback | None, job: Job, completed: int, total: int) -> None:
        if on_event is None:
            return
        on_event(
            ProgressEvent(
                job_id=job.id,
                file_name=Path(job.source_path).name,
                status=job.status,
                completed_index=completed,
                total_count=total,
            )
        )
