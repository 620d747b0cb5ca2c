"""Background worker that runs one conversion pipeline off the driving thread.

The worker thread is the only writer of job status while a run is active.
Each ProgressEvent crosses back to the controller through a blocking queued
connection: the worker does not start the next job until the driving thread
has handled the previous event. Consequently the driving thread must keep its
event loop running and must never block waiting on the worker mid-run.
"""

from __future__ import annotations

import os

from PySide6.QtCore import QObject, QThread, Qt, Signal, Slot

from image_converter.logger import get_logger

from .converter import convert_image
from .errors import AlreadyRunningError
from .formats import OutputFormat
from .pipeline import ConvertFn, Pipeline, ProgressEvent
from .registry import JobRegistry, RunSummary

_logger = get_logger("worker")


class ConvertWorker(QThread):
    """Worker thread that processes an already started pipeline."""

    job_event = Signal(object)  # ProgressEvent
    completed = Signal(object)  # RunSummary
    error = Signal(str)

    def __init__(self, pipeline: Pipeline):
        super().__init__()
        self._pipeline = pipeline

    def run(self) -> None:
        try:
            summary = self._pipeline.process(self.job_event.emit)
        except Exception as ex:
            _logger.exception("conversion run failed")
            self.error.emit(f"Conversion run failed: {ex}")
            return
        self.completed.emit(summary)


class ConvertController(QObject):
    """Owns the pipeline and its worker; lives on the driving thread."""

    job_event = Signal(object)
    progress = Signal(int, int)  # completed, total
    log = Signal(str)
    completed = Signal(object)
    error = Signal(str)

    def __init__(
        self,
        registry: JobRegistry,
        convert_fn: ConvertFn = convert_image,
        parent: QObject | None = None,
    ):
        super().__init__(parent)
        self._registry = registry
        self._pipeline = Pipeline(registry, convert_fn)
        self._worker: ConvertWorker | None = None

    @property
    def pipeline(self) -> Pipeline:
        return self._pipeline

    def is_running(self) -> bool:
        if self._registry.running:
            return True
        return self._worker is not None and self._worker.isRunning()

    def start(self, destination_dir: str | os.PathLike[str], fmt: OutputFormat) -> None:
        """Start a run in the background.

        Lifecycle errors (NothingToDoError, AlreadyRunningError) are raised here,
        before any thread is started.
        """
        if self._worker is not None:
            raise AlreadyRunningError("a conversion run is already active")
        self._pipeline.start(destination_dir, fmt)

        worker = ConvertWorker(self._pipeline)
        worker.job_event.connect(self._on_job_event, Qt.ConnectionType.BlockingQueuedConnection)
        worker.completed.connect(self._on_worker_completed)
        worker.error.connect(self._on_worker_error)

        self._worker = worker
        worker.start()

    @Slot(object)
    def _on_job_event(self, event: ProgressEvent) -> None:
        self.job_event.emit(event)
        if event.status.is_terminal:
            self.progress.emit(event.completed_index, event.total_count)
            self.log.emit(f"[{event.completed_index}/{event.total_count}] {event.file_name}: {event.status.value}")

    @Slot(object)
    def _on_worker_completed(self, summary: RunSummary) -> None:
        self._release_worker()
        self.completed.emit(summary)

    @Slot(str)
    def _on_worker_error(self, msg: str) -> None:
        self._release_worker()
        self.error.emit(msg)

    def _release_worker(self) -> None:
        """Join the finished worker thread and schedule its deletion."""
        worker = self._worker
        self._worker = None
        if worker is None:
            return
        # The worker emitted its final signal as the last step of run(), so
        # this join is short.
        worker.wait()
        worker.deleteLater()
