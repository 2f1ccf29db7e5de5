import logging
from pathlib import Path
from typing import List, Tuple

import pytest

from app.autotest import reporting
from app.autotest.dispatcher import EnqueueError
from app.autotest.engine import FAIL, PASS, CaseRecord, SubmissionResult
from app.autotest.error_codes import ErrorCode
from app.autotest.loader import LoadError, MalformedCaseError
from app.autotest.registry import CaseReference
from app.autotest.reporting import ResultReporter, format_status_line
from app.autotest.telemetry import RunTelemetry


@pytest.fixture
def lines(monkeypatch: pytest.MonkeyPatch) -> List[Tuple[int, str]]:
    captured: List[Tuple[int, str]] = []
    monkeypatch.setattr(reporting, "log_line", lambda msg, level=logging.INFO: captured.append((level, msg)))
    return captured


def _result(status, *, error=None, error_code=None) -> SubmissionResult:
    case = CaseRecord(
        project="iot",
        name="gateway management",
        config={},
        run=lambda *a: None,
        reference=CaseReference(locator="./cases/iot/gateway.py"),
        token=7,
        status=status,
    )
    return SubmissionResult(url="https://example.test/g", case=case, error=error, error_code=error_code)


def test_status_line_format() -> None:
    assert format_status_line("iot", "gateway", "PASS") == "project: iot, test case: gateway, test status: PASS"


def test_pass_is_logged_at_info(lines) -> None:
    reporter = ResultReporter()

    reporter.report(_result(PASS))

    assert lines == [(logging.INFO, "project: iot, test case: gateway management, test status: PASS")]
    assert (reporter.passed, reporter.failed) == (1, 0)


def test_fail_is_logged_at_error(lines) -> None:
    reporter = ResultReporter()

    reporter.report(_result(FAIL, error="RunRoutineError: boom", error_code=ErrorCode.RUN_ROUTINE))

    assert lines == [(logging.ERROR, "project: iot, test case: gateway management, test status: FAIL")]
    assert reporter.failed == 1


def test_missing_status_counts_as_fail(lines) -> None:
    reporter = ResultReporter()

    reporter.report(_result(None))

    assert lines[-1][1].endswith("test status: FAIL")
    assert reporter.failed == 1


def test_results_are_recorded_in_telemetry(lines) -> None:
    telemetry = RunTelemetry(target="cases")
    reporter = ResultReporter(telemetry)

    reporter.report(_result(PASS))
    reporter.report(_result(FAIL))

    assert [entry["status"] for entry in telemetry.entries] == ["PASS", "FAIL"]
    assert telemetry.entries[0]["reason"] == ""
    assert telemetry.entries[1]["reason"] == ErrorCode.CASE_FAILED
    assert telemetry.entries[1]["case"] == "./cases/iot/gateway.py"


def test_import_failure_lines(lines) -> None:
    reporter = ResultReporter()
    ref = CaseReference(locator="./cases/iot/broken.py", root=Path("."))

    reporter.report_failure(ref, reason=ErrorCode.LOAD, error=LoadError("SyntaxError: invalid syntax"))

    assert [msg for _, msg in lines] == [
        "failed to import case: ./cases/iot/broken.py",
        "SyntaxError: invalid syntax",
        "project: undefined, test case: broken, test status: FAIL",
    ]
    assert all(level == logging.ERROR for level, _ in lines)


def test_malformed_case_skips_import_line(lines) -> None:
    reporter = ResultReporter()
    ref = CaseReference(locator="./cases/no_url.py")

    reporter.report_failure(
        ref,
        reason=ErrorCode.MALFORMED_CASE,
        error=MalformedCaseError("case config has no entries[0].url"),
    )

    assert [msg for _, msg in lines] == [
        "case config has no entries[0].url",
        "project: undefined, test case: no_url, test status: FAIL",
    ]


def test_enqueue_failure_keeps_loaded_identity(lines) -> None:
    reporter = ResultReporter()
    ref = CaseReference(locator="./cases/iot/gateway.py")

    reporter.report_failure(
        ref,
        reason=ErrorCode.ENQUEUE,
        error=EnqueueError("failed to enqueue case: RuntimeError: closed"),
        project="iot",
        name="gateway management",
    )

    assert lines[0][1] == "failed to enqueue case: ./cases/iot/gateway.py"
    assert lines[-1][1] == "project: iot, test case: gateway management, test status: FAIL"
    assert reporter.total == 1


def test_missing_project_and_name_fall_back(lines) -> None:
    telemetry = RunTelemetry(target="cases")
    reporter = ResultReporter(telemetry)
    case = CaseRecord(
        project=None,
        name=None,
        config={"entries": [{"url": "https://example.test/n"}]},
        run=lambda *a: None,
        reference=CaseReference(locator="./cases/noproj.py"),
        status=PASS,
    )

    reporter.report(SubmissionResult(url="https://example.test/n", case=case))

    assert lines == [(logging.INFO, "project: undefined, test case: noproj, test status: PASS")]
    assert telemetry.entries[0]["project"] == "undefined"
    assert telemetry.entries[0]["name"] == "noproj"
