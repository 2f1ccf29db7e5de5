from __future__ import annotations

from typing import Literal

from . import config
from .logging_utils import _autotest_event
from .utils import log_line

Entrypoint = Literal["cli", "summary", "tests"]


def _raise_config_error(message: str, *, entrypoint: Entrypoint, error: str) -> None:
    _autotest_event(
        "error",
        phase="config",
        context="runtime_validation",
        error=error,
        entrypoint=entrypoint,
    )
    log_line(f"[CONFIG] {message} (entrypoint={entrypoint})")
    raise ValueError(message)


def _clamp(field_name: str, value: int, adjusted: int, *, entrypoint: Entrypoint) -> None:
    _autotest_event(
        "state",
        phase="config",
        context="runtime_validation",
        kind="config_adjustment",
        field=field_name,
        value=value,
        adjusted=adjusted,
        entrypoint=entrypoint,
    )
    log_line(f"[CONFIG] {field_name}={value} is out of range; clamping to {adjusted}.")
    setattr(config, field_name, adjusted)


def validate_runtime_config(entrypoint: Entrypoint) -> None:
    """Validate runtime configuration for the given entrypoint.

    Raises ``ValueError`` when a blocking misconfiguration is detected.
    Out-of-range concurrency and retry knobs are clamped and logged instead.
    """

    if config.MAX_CONCURRENCY < 1:
        _clamp("MAX_CONCURRENCY", config.MAX_CONCURRENCY, 1, entrypoint=entrypoint)

    if config.RETRY_COUNT < 0:
        _clamp("RETRY_COUNT", config.RETRY_COUNT, 0, entrypoint=entrypoint)

    if config.WAIT_UNTIL not in config.WAIT_UNTIL_CHOICES:
        _raise_config_error(
            f"WAIT_UNTIL must be one of {', '.join(sorted(config.WAIT_UNTIL_CHOICES))}.",
            entrypoint=entrypoint,
            error="invalid_wait_until",
        )

    timing_fields = [
        ("NAV_TIMEOUT_MS", config.NAV_TIMEOUT_MS),
        ("WAIT_FOR_MS", config.WAIT_FOR_MS),
    ]
    for field_name, value in timing_fields:
        if value < 0:
            _raise_config_error(
                f"{field_name} must not be negative.",
                entrypoint=entrypoint,
                error="invalid_timing",
            )

    if not config.CASE_EXTENSIONS:
        _raise_config_error(
            "CASE_EXTENSIONS must name at least one file extension.",
            entrypoint=entrypoint,
            error="no_case_extensions",
        )


__all__ = ["validate_runtime_config", "Entrypoint"]
