from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path

from . import config

LOGGER = logging.getLogger("autotest")
_LOGGER_INITIALISED = False
_CURRENT_LOG_FILE: Path | None = None


def _configure_logger(log_path: Path, *, level: int = logging.INFO) -> None:
    """Configure the shared runner logger to write to stdout and ``log_path``."""

    global _LOGGER_INITIALISED, _CURRENT_LOG_FILE

    log_path.parent.mkdir(parents=True, exist_ok=True)
    close_loggers()

    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)

    LOGGER.setLevel(level)
    LOGGER.addHandler(stream_handler)
    LOGGER.addHandler(file_handler)
    LOGGER.propagate = False

    _CURRENT_LOG_FILE = log_path
    _LOGGER_INITIALISED = True


def _ensure_logger() -> None:
    """Initialise the logger lazily using a default log file."""

    if _LOGGER_INITIALISED:
        return
    _configure_logger(config.LOG_DIR / "latest.log")


def setup_run_logger(*, verbose: bool = False) -> Path:
    """Rotate to a fresh timestamped log file for the current run.

    ``verbose`` lowers the level to DEBUG so structured events and load
    tracebacks are written as well.
    """

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_path = config.LOG_DIR / f"autotest_{timestamp}.log"
    _configure_logger(log_path, level=logging.DEBUG if verbose else logging.INFO)
    LOGGER.debug("Logging to %s", log_path)
    return log_path


def close_loggers() -> None:
    """Flush and detach every handler of the runner logger."""

    global _LOGGER_INITIALISED

    for handler in list(LOGGER.handlers):
        LOGGER.removeHandler(handler)
        try:
            handler.close()
        except Exception:  # noqa: BLE001
            continue
    _LOGGER_INITIALISED = False


def get_current_log_path() -> Path | None:
    """Return the path of the log file currently receiving lines."""

    return _CURRENT_LOG_FILE


def log_line(message: str, level: int = logging.INFO) -> None:
    """Write a timestamped log line to stdout and the active log file."""

    _ensure_logger()
    LOGGER.log(level, message)


def ensure_dirs() -> None:
    """Ensure that the runner's data directories exist."""

    config.DATA_DIR.mkdir(parents=True, exist_ok=True)
    config.LOG_DIR.mkdir(parents=True, exist_ok=True)
    config.RUNS_DIR.mkdir(parents=True, exist_ok=True)


def case_name_from_path(path: str | Path) -> str:
    """Return the base name of a case file without its extension."""

    return Path(str(path).replace("\\", "/")).stem
