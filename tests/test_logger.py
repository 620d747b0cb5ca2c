import logging
import sys

from image_converter import logger as ic_logger


def _stderr_handlers(base: logging.Logger) -> list[logging.Handler]:
    return [h for h in base.handlers if isinstance(h, logging.StreamHandler) and h.stream is sys.stderr]


def test_setup_logger_idempotent_handlers():
    """Calling setup_logger() repeatedly should leave exactly one stderr StreamHandler."""
    base = ic_logger.setup_logger(level=logging.DEBUG)
    _ = ic_logger.setup_logger(level=logging.DEBUG)

    assert len(_stderr_handlers(base)) == 1
    assert base.propagate is False


def test_env_level_overrides_argument(monkeypatch):
    monkeypatch.setenv("IMAGE_CONVERTER_LOG_LEVEL", "warning")

    base = ic_logger.setup_logger(level=logging.DEBUG)

    assert base.level == logging.WARNING


def test_category_filter_keeps_only_listed_children(monkeypatch):
    monkeypatch.setenv("IMAGE_CONVERTER_LOG_CATS", "scanner, pipeline")
    base = ic_logger.setup_logger()
    (handler,) = _stderr_handlers(base)

    def _record(name: str) -> logging.LogRecord:
        return logging.LogRecord(name, logging.INFO, __file__, 1, "msg", None, None)

    assert handler.filter(_record("image_converter.scanner"))
    assert handler.filter(_record("image_converter.pipeline"))
    assert not handler.filter(_record("image_converter.converter"))

    monkeypatch.delenv("IMAGE_CONVERTER_LOG_CATS")
    ic_logger.setup_logger()
    assert handler.filter(_record("image_converter.converter"))


def test_get_logger_returns_child_of_project_logger():
    assert ic_logger.get_logger("scanner").name == "image_converter.scanner"
    assert ic_logger.get_logger().name == "image_converter"
