from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass

import numpy as np
from PySide6.QtCore import Property, QObject, QUrl, Signal

from image_converter.conversion_engine.converter import convert_image
from image_converter.conversion_engine.errors import ConverterError, InvalidStateError
from image_converter.conversion_engine.formats import OutputFormat
from image_converter.conversion_engine.pipeline import ConvertFn, ProgressEvent
from image_converter.conversion_engine.registry import Job, JobRegistry, JobStatus, RunSummary
from image_converter.conversion_engine.scanner import scan
from image_converter.conversion_engine.thumbnail import load_thumbnail
from image_converter.conversion_engine.worker import ConvertController
from image_converter.logger import get_logger
from image_converter.path_utils import canonical_dir_str
from image_converter.settings_manager import SettingsManager, default_settings_path

from .state.tasks_state import TasksState

_logger = get_logger("backend")

_TASK_NAME = "convert"


@dataclass(frozen=True)
class IntakeResult:
    added_count: int
    total_count: int


def _to_local_path(value: object) -> str:
    p = str(value or "")
    if p.startswith("file:"):
        url = QUrl(p)
        if url.isLocalFile():
            p = url.toLocalFile()
    return p


def _get_payload_value(payload: object | None, key: str, default: object = None) -> object:
    if isinstance(payload, dict):
        return payload.get(key, default)
    return default


class ConverterBackend(QObject):
    """Single backend object exposed to a front end.

    Front end -> Python: direct method calls, or backend.dispatch(cmd, payload)
    Python -> front end: backend.jobEvent(ProgressEvent), backend.runFinished(RunSummary),
    backend.taskEvent(dict)
    """

    jobEvent = Signal(object)
    runFinished = Signal(object)
    taskEvent = Signal(object)
    statusChanged = Signal(str)

    def __init__(
        self,
        settings: SettingsManager | None = None,
        convert_fn: ConvertFn = convert_image,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._settings_mgr = settings or SettingsManager(default_settings_path())
        self._registry = JobRegistry()
        self._tasks = TasksState(self)
        self._status = "Ready"

        self._controller = ConvertController(self._registry, convert_fn, self)
        self._controller.job_event.connect(self._on_job_event)
        self._controller.completed.connect(self._on_run_completed)
        self._controller.error.connect(self._on_run_error)

    # ---- expose state objects ----
    def _get_tasks(self) -> QObject:
        return self._tasks

    tasks = Property(QObject, _get_tasks, constant=True)  # type: ignore[arg-type]

    @property
    def settings(self) -> SettingsManager:
        return self._settings_mgr

    @property
    def registry(self) -> JobRegistry:
        return self._registry

    def jobs(self) -> tuple[Job, ...]:
        return self._registry.all()

    def is_running(self) -> bool:
        return self._controller.is_running()

    def status_message(self) -> str:
        return self._status

    def thumbnail(self, path: str | os.PathLike[str]) -> np.ndarray | None:
        """Preview bitmap for a front end's job list; None if undecodable."""
        return load_thumbnail(_to_local_path(path), self._settings_mgr.thumbnail_size)

    # ---- operations ----
    def add_inputs(self, paths: Iterable[str | os.PathLike[str]]) -> IntakeResult:
        """Register eligible images found at ``paths``.

        Nonexistent paths and unsupported file types are ignored silently; only
        the counts reflect them.
        """
        if self.is_running():
            raise InvalidStateError("cannot add inputs while a conversion run is active")
        new_jobs = scan([_to_local_path(p) for p in paths], self._registry.keys())
        added = self._registry.append(new_jobs)
        total = len(self._registry)
        self._tasks._set_job_count(total)
        if added:
            self._set_status(f"Added {added} image(s), {total} in list")
        _logger.info("intake: %d added, %d total", added, total)
        return IntakeResult(added_count=added, total_count=total)

    def start_run(self, destination_dir: str | os.PathLike[str], fmt: OutputFormat | None = None) -> None:
        """Start converting every registered job into ``destination_dir``.

        Raises NothingToDoError when no jobs are registered and
        AlreadyRunningError when a run is active.
        """
        fmt = fmt or self._settings_mgr.output_format
        folder = canonical_dir_str(_to_local_path(destination_dir))
        if len(self._registry) == 0:
            self._set_status("Add images first")
        self._controller.start(folder, fmt)

        self._settings_mgr.update(last_destination_dir=folder, output_format=fmt.name.lower())
        self._tasks._set_percent(0)
        self._tasks._set_running(True)
        self._set_status("Preparing...")
        self.taskEvent.emit(
            {
                "type": "task",
                "name": _TASK_NAME,
                "state": "started",
                "folder": folder,
                "format": fmt.name,
                "total": len(self._registry),
            }
        )

    def clear_all(self) -> None:
        if self.is_running():
            raise InvalidStateError("cannot clear jobs while a conversion run is active")
        self._registry.clear()
        self._tasks._set_job_count(0)
        self._tasks._set_percent(0)
        self._set_status("Ready")

    def dispatch(self, command: str, payload: object | None = None) -> None:
        """Command entry for front ends; lifecycle errors become taskEvent errors."""
        try:
            if command == "addInputs":
                raw = _get_payload_value(payload, "paths", default=payload)
                paths = list(raw) if isinstance(raw, (list, tuple)) else [raw]
                result = self.add_inputs([p for p in paths if p])
                self.taskEvent.emit(
                    {
                        "type": "intake",
                        "added": result.added_count,
                        "total": result.total_count,
                    }
                )
                return
            if command == "startRun":
                folder = _get_payload_value(payload, "folder", default=self._settings_mgr.last_destination_dir)
                fmt_raw = _get_payload_value(payload, "format")
                fmt = OutputFormat.parse(str(fmt_raw)) if fmt_raw else None
                if not folder:
                    raise InvalidStateError("no destination folder")
                self.start_run(str(folder), fmt)
                return
            if command == "clearAll":
                self.clear_all()
                return
        except (ConverterError, ValueError) as e:
            _logger.warning("%s rejected: %s", command, e)
            self.taskEvent.emit({"type": "task", "name": _TASK_NAME, "state": "error", "message": str(e)})
            return
        _logger.debug("unknown command: %s", command)

    # ---- controller signals -> events ----
    def _on_job_event(self, event: ProgressEvent) -> None:
        if event.status is JobStatus.PROCESSING:
            self._set_status(f"Processing {event.completed_index + 1}/{event.total_count}: {event.file_name}")
        percent = int(event.completed_index * 100 / event.total_count) if event.total_count else 0
        self._tasks._set_percent(percent)
        self.jobEvent.emit(event)
        self.taskEvent.emit(
            {
                "type": "task",
                "name": _TASK_NAME,
                "state": "progress",
                "jobId": event.job_id,
                "fileName": event.file_name,
                "status": event.status.value,
                "completed": event.completed_index,
                "total": event.total_count,
                "percent": percent,
            }
        )

    def _on_run_completed(self, summary: RunSummary) -> None:
        self._tasks._set_percent(100)
        self._tasks._set_running(False)
        if summary.failed == 0:
            self._set_status(f"Done: all {summary.succeeded} image(s) converted")
        else:
            self._set_status(f"Done: {summary.succeeded} converted, {summary.failed} failed")
        self.runFinished.emit(summary)
        self.taskEvent.emit(
            {
                "type": "task",
                "name": _TASK_NAME,
                "state": "finished",
                "succeeded": summary.succeeded,
                "failed": summary.failed,
                "total": summary.total,
            }
        )

    def _on_run_error(self, msg: str) -> None:
        self._tasks._set_running(False)
        self._set_status(msg)
        self.taskEvent.emit({"type": "task", "name": _TASK_NAME, "state": "error", "message": str(msg)})

    def _set_status(self, text: str) -> None:
        if text == self._status:
            return
        self._status = text
        self._tasks._set_status_text(text)
        self.statusChanged.emit(text)
