"""One end-to-end run: discover cases, dispatch them, persist the summary."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from . import config
from .case_utils import default_utils
from .discovery import scan_cases
from .dispatcher import Dispatcher
from .engine import CrawlEngine, EngineOptions, PlaywrightEngine
from .logging_utils import _autotest_event
from .registry import build_registry
from .reporting import ResultReporter
from .telemetry import RunTelemetry
from .utils import ensure_dirs, log_line

EngineFactory = Callable[[EngineOptions], Awaitable[CrawlEngine]]


@dataclass
class RunReport:
    target: str
    discovered: int
    passed: int
    failed: int
    peak_in_flight: int
    telemetry_path: Optional[str] = None


async def run_cases(
    case_path: Optional[str] = None,
    *,
    settings: Optional[config.EngineSettings] = None,
    engine_factory: Optional[EngineFactory] = None,
    evaluate_page: Optional[str] = None,
) -> RunReport:
    """Run every case found at ``case_path`` and return the tallies.

    ``case_path`` defaults to the configured cases directory.

    Raises :class:`~app.autotest.discovery.DiscoveryError` before any browser
    is launched when ``case_path`` cannot be enumerated.
    """

    ensure_dirs()
    settings = settings or config.load_engine_settings()
    engine_factory = engine_factory or PlaywrightEngine.launch
    case_path = case_path or settings.cases_dir

    log_line(f"test target(s): {case_path}", logging.DEBUG)
    references = scan_cases(case_path)
    registry = build_registry(references)

    telemetry = RunTelemetry(target=str(case_path))
    reporter = ResultReporter(telemetry)
    dispatcher = Dispatcher(registry, reporter, concurrency=settings.max_concurrency)

    if registry:
        hooks: dict[str, Any] = {
            "custom_crawl": dispatcher.custom_crawl,
            "on_finish": dispatcher.on_finish,
            "utils": default_utils(),
            "evaluate_page": evaluate_page,
        }
        engine = await engine_factory(EngineOptions.from_settings(settings, **hooks))
        await dispatcher.run(engine)
    else:
        log_line(f"no test cases found under {case_path}", logging.WARNING)

    report = RunReport(
        target=str(case_path),
        discovered=registry.discovered,
        passed=reporter.passed,
        failed=reporter.failed,
        peak_in_flight=dispatcher.peak_in_flight,
    )
    report.telemetry_path = telemetry.finalize(
        {"discovered": report.discovered, "peak_in_flight": report.peak_in_flight}
    )
    _autotest_event(
        "run",
        phase="complete",
        discovered=report.discovered,
        passed=report.passed,
        failed=report.failed,
        telemetry=report.telemetry_path,
    )
    log_line(
        f"run finished: {report.discovered} case(s), {report.passed} passed, {report.failed} failed"
    )
    return report


__all__ = ["RunReport", "run_cases"]
