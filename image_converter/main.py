"""Command-line front end: add inputs, convert them, print progress.

    image-converter --format png --output-dir out/ photos/ extra.nef
"""

from __future__ import annotations

import argparse
import os
import sys

from PySide6.QtCore import QCoreApplication

from image_converter.app.backend import ConverterBackend
from image_converter.conversion_engine.errors import ConverterError
from image_converter.conversion_engine.formats import OutputFormat
from image_converter.conversion_engine.pipeline import ProgressEvent
from image_converter.conversion_engine.registry import RunSummary
from image_converter.logger import get_logger, setup_logger
from image_converter.settings_manager import SettingsManager, default_settings_path

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_USAGE = 2

logger = get_logger("main")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="image-converter",
        description="Batch-convert images (including camera RAW files) to JPEG, PNG, TIFF or HEIC.",
    )
    parser.add_argument("inputs", nargs="+", help="Image files or folders (folders are scanned one level deep)")
    parser.add_argument(
        "-f",
        "--format",
        type=OutputFormat.parse,
        help="Output format: jpeg, png, tiff or heic (default: last used)",
    )
    parser.add_argument("-o", "--output-dir", help="Destination folder (default: last used)")
    parser.add_argument("--settings", help="Settings file path")
    parser.add_argument("--log-level", help="Set log level")
    parser.add_argument("--log-cats", help="Set log categories")
    return parser


def _apply_cli_logging_options(args: argparse.Namespace) -> None:
    # Reflect logging options in the environment so every later
    # setup_logger() call picks them up.
    if args.log_level:
        os.environ["IMAGE_CONVERTER_LOG_LEVEL"] = args.log_level
    if args.log_cats:
        os.environ["IMAGE_CONVERTER_LOG_CATS"] = args.log_cats
    setup_logger()


def run(argv: list[str] | None = None) -> int:
    """Application entrypoint (packaging-friendly)."""
    if argv is None:
        argv = sys.argv
    parser = _build_parser()
    try:
        args = parser.parse_args(argv[1:])
    except SystemExit as e:
        return EXIT_USAGE if e.code else EXIT_OK
    _apply_cli_logging_options(args)
    logger.debug("cli args: %s", args)

    app = QCoreApplication.instance() or QCoreApplication(argv[:1])
    settings = SettingsManager(args.settings or default_settings_path())
    backend = ConverterBackend(settings)

    result = backend.add_inputs(args.inputs)
    print(f"Added {result.added_count} image(s), {result.total_count} in list")

    destination = args.output_dir or settings.last_destination_dir
    if not destination:
        print("No output folder given (use --output-dir)", file=sys.stderr)
        return EXIT_USAGE
    try:
        os.makedirs(destination, exist_ok=True)
    except OSError as e:
        print(f"Cannot use output folder {destination}: {e}", file=sys.stderr)
        return EXIT_USAGE

    outcome: dict[str, int] = {"code": EXIT_OK}

    def _on_job(event: ProgressEvent) -> None:
        if event.status.is_terminal:
            print(f"[{event.completed_index}/{event.total_count}] {event.file_name}: {event.status.value}")

    def _on_finished(summary: RunSummary) -> None:
        print(backend.status_message())
        outcome["code"] = EXIT_OK if summary.failed == 0 else EXIT_FAILURES
        app.quit()

    def _on_task(payload: object) -> None:
        if isinstance(payload, dict) and payload.get("state") == "error":
            print(payload.get("message", "error"), file=sys.stderr)
            outcome["code"] = EXIT_FAILURES
            app.quit()

    backend.jobEvent.connect(_on_job)
    backend.runFinished.connect(_on_finished)
    backend.taskEvent.connect(_on_task)

    try:
        backend.start_run(destination, args.format)
    except ConverterError as e:
        print(e.message, file=sys.stderr)
        return EXIT_USAGE

    app.exec()
    return outcome["code"]


if __name__ == "__main__":
    sys.exit(run())
