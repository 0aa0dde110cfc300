from __future__ import annotations

import logging
import os
import sys
import traceback
from datetime import datetime
from pathlib import Path

_LOGGER = logging.getLogger("scoresynth.logging")
_PACKAGE_LOGGER = "scoresynth"
LOG_DIR_ENV = "SCORESYNTH_LOG_DIR"
DEBUG_ENV = "SCORESYNTH_DEBUG"
_LOG_FILE = "scoresynth.log"

_configured = False

_TAGS = {
    logging.DEBUG: "[debug]",
    logging.INFO: "[info]",
    logging.WARNING: "[warn]",
    logging.ERROR: "[error]",
    logging.CRITICAL: "[fatal]",
}


class _TaggedFormatter(logging.Formatter):
    """Console lines read `[warn] scoresynth.instrument: message`."""

    def __init__(self) -> None:
        super().__init__("%(tag)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        record.tag = _TAGS.get(record.levelno, record.levelname.lower())
        return super().format(record)


# =============================================================================
# Log file location
# =============================================================================


def get_log_dir() -> Path:
    override = os.environ.get(LOG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".cache" / "scoresynth" / "logs"


def get_log_path() -> Path:
    return get_log_dir() / _LOG_FILE


def _prepared_log_path() -> Path:
    path = get_log_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


# =============================================================================
# Handlers
# =============================================================================


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler(stream=sys.__stderr__)
    handler.setLevel(logging.DEBUG if os.environ.get(DEBUG_ENV) else logging.INFO)
    handler.setFormatter(_TaggedFormatter())
    return handler


def _file_handler(path: Path) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    return handler


def _drop_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def configure_logging(*, force: bool = False) -> None:
    """Attach console and file handlers to the `scoresynth` logger once.

    The console handler is skipped when the root logger already has handlers
    (an application or pytest owns the output), unless `force` is set.
    Records still propagate to the root logger either way.
    """
    global _configured
    if _configured and not force:
        return

    package_logger = logging.getLogger(_PACKAGE_LOGGER)
    package_logger.setLevel(logging.DEBUG)
    if force:
        _drop_handlers(package_logger)

    if force or not logging.getLogger().handlers:
        package_logger.addHandler(_console_handler())

    try:
        package_logger.addHandler(_file_handler(_prepared_log_path()))
    except OSError as exc:
        _LOGGER.warning("File logging disabled: %s", exc)

    package_logger.propagate = True
    _configured = True


# =============================================================================
# Failure reports
# =============================================================================


def _failure_report(context: str, exc: BaseException) -> str:
    stamp = datetime.now().isoformat(timespec="seconds")
    header = f"[{stamp}] {context} failed: {type(exc).__name__}: {exc}\n"
    trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return f"{header}{trace}\n"


def log_exception(context: str, exc: BaseException) -> Path | None:
    """Append a timestamped traceback for `exc` to the log file.

    Returns the log path, or None when the file could not be written.
    """
    try:
        path = _prepared_log_path()
        with path.open("a", encoding="utf-8") as handle:
            handle.write(_failure_report(context, exc))
    except OSError as write_exc:
        _LOGGER.warning("Could not record %s failure: %s", context, write_exc)
        return None
    _LOGGER.debug("%s failure recorded in %s", context, path)
    return path
