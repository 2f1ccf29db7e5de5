from __future__ import annotations

import logging
from typing import Any

from .utils import log_line


def _autotest_event(label: str, **fields: Any) -> None:
    """Emit ``[AUTOTEST][LABEL] key=value, ...`` with keys in sorted order.

    The ``error`` label is logged at ERROR, every other label at DEBUG, so
    engine and dispatch events only reach the log with ``-v``.
    """

    try:
        level = logging.ERROR if label == "error" else logging.DEBUG
        payload = ", ".join(f"{key}={value!r}" for key, value in sorted(fields.items()))
        log_line(f"[AUTOTEST][{label.upper()}] {payload}", level)
    except Exception:  # noqa: BLE001
        # Never let logging break a run.
        return


__all__ = ["_autotest_event"]
