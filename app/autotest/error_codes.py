
"""Error code taxonomy for test-case failures.

The codes appear in structured log events and in run telemetry entries so a
FAIL line can be traced back to the stage that produced it.
"""

from __future__ import annotations


class ErrorCode:
    DISCOVERY = "discovery_error"
    LOAD = "load_error"
    MALFORMED_CASE = "malformed_case"
    ENQUEUE = "enqueue_error"
    DUPLICATE_SKIPPED = "duplicate_skipped"
    NAVIGATION = "navigation_error"
    RUN_ROUTINE = "run_routine_error"
    CASE_FAILED = "case_failed"
    INTERNAL = "internal_error"


class AutotestError(Exception):
    """Base class for runner errors carrying an :class:`ErrorCode` value."""

    error_code: str = ErrorCode.INTERNAL

    def __init__(self, message: str, *, error_code: str | None = None) -> None:
        super().__init__(message)
        if error_code is not None:
            self.error_code = error_code


def describe_error(exc: BaseException) -> str:
    """Return ``"<Type>: <message>"`` for log lines, preferring the cause."""

    cause = exc.__cause__ or exc
    message = str(cause) or repr(cause)
    return f"{type(cause).__name__}: {message}"


__all__ = ["ErrorCode", "AutotestError", "describe_error"]
