"""Logging setup for the map pipeline."""

import logging
import logging.handlers
import os
import threading

PIPELINE_LOGGER = "map_pipeline"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(threadName)s]: %(message)s"

logger = logging.getLogger(PIPELINE_LOGGER)

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 3

_lock = threading.Lock()


def setup_logging(level: str = "INFO", log_file: str = None, force: bool = False):
    """Configure console and optional rotating-file logging.

    When the host application already configured the root logger (and
    ``force`` is false) only the ``map_pipeline`` hierarchy is touched:
    its level is set and ``log_file``, if given, is attached once.
    """
    with _lock:
        numeric_level = _resolve_level(level)
        root = logging.getLogger()
        if force or not root.handlers:
            _configure_root(numeric_level, log_file, force)
        else:
            _configure_embedded(numeric_level, log_file)


def _resolve_level(level: str) -> int:
    numeric_level = logging.getLevelName(str(level).upper())
    if not isinstance(numeric_level, int):
        logger.warning("Invalid log level '%s', defaulting to INFO", level)
        return logging.INFO
    return numeric_level


def _file_handler(log_file: str) -> logging.Handler:
    os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def _configure_root(numeric_level: int, log_file: str, force: bool):
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(_file_handler(log_file))
    logging.basicConfig(
        level=numeric_level, format=LOG_FORMAT, handlers=handlers, force=force,
    )
    logger.debug("Root logging configured with %d handler(s)", len(handlers))


def _configure_embedded(numeric_level: int, log_file: str):
    pipeline_logger = logging.getLogger(PIPELINE_LOGGER)
    pipeline_logger.setLevel(numeric_level)
    if not log_file:
        return
    target = os.path.abspath(log_file)
    attached = any(
        isinstance(h, logging.FileHandler) and h.baseFilename == target
        for h in pipeline_logger.handlers
    )
    if not attached:
        pipeline_logger.addHandler(_file_handler(log_file))
        logger.info("Logging to %s", target)
