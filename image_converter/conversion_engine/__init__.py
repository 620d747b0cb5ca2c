"""Conversion engine: job intake and the sequential conversion pipeline.

This package provides:
- Input classification and directory intake (classifier, scanner)
- The job registry and its status state machine (registry)
- Single-image conversion with pyvips (converter, formats)
- The sequential pipeline and its Qt background worker (pipeline, worker)

Usage:
    from image_converter.conversion_engine import JobRegistry, OutputFormat, Pipeline, scan

    registry = JobRegistry()
    registry.append(scan(["/path/to/raws"], registry.keys()))
    summary = Pipeline(registry).run("/path/to/out", OutputFormat.PNG, on_event=print)
"""

from .classifier import SUPPORTED_EXTENSIONS, is_eligible
from .converter import ConversionOutcome, convert_image
from .errors import (
    AlreadyRunningError,
    ConversionError,
    ConversionStage,
    ConverterError,
    InvalidStateError,
    NothingToDoError,
)
from .formats import EncoderConfig, OutputFormat
from .pipeline import Pipeline, ProgressEvent, RunState
from .registry import Job, JobRegistry, JobStatus, RunSummary
from .scanner import scan

try:
    from .worker import ConvertController, ConvertWorker
except Exception:  # pragma: no cover - allow importing the engine without PySide6
    ConvertController = None
    ConvertWorker = None

__all__ = [
    "SUPPORTED_EXTENSIONS",
    "AlreadyRunningError",
    "ConversionError",
    "ConversionOutcome",
    "ConversionStage",
    "ConvertController",
    "ConvertWorker",
    "ConverterError",
    "EncoderConfig",
    "InvalidStateError",
    "Job",
    "JobRegistry",
    "JobStatus",
    "NothingToDoError",
    "OutputFormat",
    "Pipeline",
    "ProgressEvent",
    "RunState",
    "RunSummary",
    "convert_image",
    "is_eligible",
    "scan",
]
