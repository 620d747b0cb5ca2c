"""Exceptions raised by the conversion engine.

Lifecycle errors are raised to the caller of the offending operation.
``ConversionError`` is never raised out of the converter; it travels inside a
``ConversionOutcome`` so a failing file cannot unwind past its own job.
"""

from __future__ import annotations

from enum import Enum


class ConverterError(Exception):
    """Base class for conversion engine errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidStateError(ConverterError):
    """An operation was attempted in the wrong lifecycle state."""


class AlreadyRunningError(ConverterError):
    """A run was requested while another run is active."""


class NothingToDoError(ConverterError):
    """A run was requested with no registered jobs."""


class ConversionStage(Enum):
    DECODE = "decode"
    ENCODE = "encode"


class ConversionError(ConverterError):
    def __init__(self, stage: ConversionStage, message: str) -> None:
        super().__init__(message)
        self.stage = stage

    def __str__(self) -> str:
        return f"{self.stage.value} failed: {self.message}"
