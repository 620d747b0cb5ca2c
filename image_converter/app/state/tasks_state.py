from __future__ import annotations

from PySide6.QtCore import Property, QObject, Signal


class TasksState(QObject):
    """Bindable state of the conversion run.

    Run progress is primarily delivered via backend.taskEvent(dict); this holds
    the small amount of state a front end binds controls to.
    """

    convertRunningChanged = Signal(bool)
    convertPercentChanged = Signal(int)
    jobCountChanged = Signal(int)
    statusTextChanged = Signal(str)

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._running = False
        self._percent = 0
        self._job_count = 0
        self._status_text = "Ready"

    def _get_running(self) -> bool:
        return bool(self._running)

    convertRunning = Property(bool, _get_running, notify=convertRunningChanged)  # type: ignore[arg-type]

    def _get_percent(self) -> int:
        return int(self._percent)

    convertPercent = Property(int, _get_percent, notify=convertPercentChanged)  # type: ignore[arg-type]

    def _get_job_count(self) -> int:
        return int(self._job_count)

    jobCount = Property(int, _get_job_count, notify=jobCountChanged)  # type: ignore[arg-type]

    def _get_status_text(self) -> str:
        return self._status_text

    statusText = Property(str, _get_status_text, notify=statusTextChanged)  # type: ignore[arg-type]

    def _set_running(self, running: bool) -> None:
        v = bool(running)
        if v == self._running:
            return
        self._running = v
        self.convertRunningChanged.emit(v)

    def _set_percent(self, percent: int) -> None:
        p = int(max(0, min(100, int(percent))))
        if p == self._percent:
            return
        self._percent = p
        self.convertPercentChanged.emit(p)

    def _set_job_count(self, count: int) -> None:
        c = max(0, int(count))
        if c == self._job_count:
            return
        self._job_count = c
        self.jobCountChanged.emit(c)

    def _set_status_text(self, text: str) -> None:
        if text == self._status_text:
            return
        self._status_text = text
        self.statusTextChanged.emit(text)
