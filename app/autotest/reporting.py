from __future__ import annotations

import logging
from typing import Optional

from .engine import PASS, FAIL, SubmissionResult
from .error_codes import ErrorCode
from .loader import UNDEFINED_PROJECT
from .registry import CaseReference
from .telemetry import RunTelemetry
from .utils import log_line


def format_status_line(project: Optional[str], name: Optional[str], status: str) -> str:
    return f"project: {project}, test case: {name}, test status: {status}"


class ResultReporter:
    """Emits exactly one status line per settled case."""

    def __init__(self, telemetry: Optional[RunTelemetry] = None) -> None:
        self.telemetry = telemetry
        self.passed = 0
        self.failed = 0

    @property
    def total(self) -> int:
        return self.passed + self.failed

    def _record(self, status: str, reason: str, **meta) -> None:
        if status == PASS:
            self.passed += 1
        else:
            self.failed += 1
        if self.telemetry is not None:
            self.telemetry.record(status, reason=reason, **meta)

    def report(self, result: SubmissionResult) -> None:
        """Log the outcome carried by an engine result."""

        case = result.case
        status = case.status or FAIL
        project = case.project or UNDEFINED_PROJECT
        name = case.name
        if not name and case.reference is not None:
            name = case.reference.name
        level = logging.INFO if status == PASS else logging.ERROR
        log_line(format_status_line(project, name, status), level)
        reason = ""
        if status != PASS:
            reason = result.error_code or ErrorCode.CASE_FAILED
        self._record(
            status,
            reason,
            project=project,
            name=name,
            url=result.url,
            case=str(case.reference) if case.reference is not None else None,
            error=result.error,
        )

    def report_failure(
        self,
        reference: CaseReference,
        *,
        reason: str,
        error: Optional[BaseException] = None,
        project: Optional[str] = None,
        name: Optional[str] = None,
    ) -> None:
        """Log a case that failed before (or while) being submitted.

        Without a loaded config the project is reported as ``undefined`` and
        the case name falls back to the file's base name.
        """

        project = project or UNDEFINED_PROJECT
        name = name or reference.name
        if reason == ErrorCode.ENQUEUE or reason == ErrorCode.DUPLICATE_SKIPPED:
            log_line(f"failed to enqueue case: {reference}", logging.ERROR)
        elif reason != ErrorCode.MALFORMED_CASE:
            log_line(f"failed to import case: {reference}", logging.ERROR)
        if error is not None:
            log_line(str(error), logging.ERROR)
        log_line(format_status_line(project, name, FAIL), logging.ERROR)
        self._record(
            FAIL,
            reason,
            project=project,
            name=name,
            case=str(reference),
            error=str(error) if error is not None else None,
        )


__all__ = ["ResultReporter", "format_status_line"]
