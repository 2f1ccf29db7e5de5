"""Work-queue dispatch between the case registry and the crawl engine.

Each slot worker repeats ``pop -> load -> submit -> await settlement`` until
the registry is empty, so at most one case per slot is ever inside the engine.
A case that fails to load or to enqueue is reported and the same slot moves
straight on to the next reference. Once every slot has drained, the
dispatcher waits for the engine to go idle and closes it.
"""
from __future__ import annotations

import asyncio
import inspect
import itertools
from typing import Any, Dict, List, Optional

from .engine import CaseRecord, CrawlEngine, CrawlHelper, SubmissionOptions, SubmissionResult
from .error_codes import AutotestError, ErrorCode, describe_error
from .loader import CaseBundle, Failed, load_case
from .logging_utils import _autotest_event
from .registry import CaseReference, CaseRegistry
from .reporting import ResultReporter


class EnqueueError(AutotestError):
    """The engine rejected a submission."""

    error_code = ErrorCode.ENQUEUE


class RunRoutineError(AutotestError):
    """A case's own ``run`` routine raised."""

    error_code = ErrorCode.RUN_ROUTINE


def initial_slot_count(limit: int, startup_slots: int = 0) -> int:
    """Slots to fill at start: the limit minus slots the engine already holds."""

    return max(1, int(limit) - max(0, int(startup_slots)))


class Dispatcher:
    def __init__(
        self,
        registry: CaseRegistry,
        reporter: ResultReporter,
        *,
        concurrency: int,
    ) -> None:
        self.registry = registry
        self.reporter = reporter
        self.concurrency = max(1, int(concurrency))
        self.engine: Optional[CrawlEngine] = None
        self._tokens = itertools.count(1)
        self._settlements: Dict[int, asyncio.Future] = {}
        self._workers: List[asyncio.Task] = []
        self.in_flight = 0
        self.peak_in_flight = 0
        self.submitted = 0
        self.settled = 0
        self.failed_before_submit = 0

    # -- engine hooks -----------------------------------------------------

    async def custom_crawl(self, page: Any, crawl: CrawlHelper, options: SubmissionOptions) -> Any:
        """Run the case routine against the loaded page.

        Anything the routine raises, ``BaseException`` subclasses included, is
        re-raised as :class:`RunRoutineError` except interrupts and cancellation.
        """

        case = options.case
        try:
            result = case.run(page, crawl, options)
            if inspect.isawaitable(result):
                result = await result
        except (KeyboardInterrupt, asyncio.CancelledError):
            raise
        except BaseException as exc:  # noqa: BLE001
            raise RunRoutineError(f"run() of {case.name} failed: {describe_error(exc)}") from exc
        return result

    def on_finish(self, result: SubmissionResult) -> None:
        """Report the settled case, then free its slot."""

        try:
            self.reporter.report(result)
        finally:
            self.on_case_settled(result)

    # -- replenishment ----------------------------------------------------

    def on_case_settled(self, result: SubmissionResult) -> None:
        """Release the slot waiting on ``result`` so it pulls the next case."""

        token = result.case.token
        future = self._settlements.pop(token, None) if token is not None else None
        if future is None or future.done():
            return
        self.in_flight -= 1
        self.settled += 1
        future.set_result(result)

    async def replenish(self, count: int) -> int:
        """Start up to ``count`` slot workers; never more than cases queued."""

        started = 0
        while count > 0 and len(self._workers) - self._finished_workers() < len(self.registry):
            slot = len(self._workers)
            self._workers.append(asyncio.create_task(self._slot(slot), name=f"autotest-slot-{slot}"))
            started += 1
            count -= 1
        if started:
            _autotest_event("dispatch", phase="replenish", started=started, queued=len(self.registry))
        return started

    def _finished_workers(self) -> int:
        return sum(1 for task in self._workers if task.done())

    async def _slot(self, slot: int) -> None:
        while True:
            reference = self.registry.pop_front()
            if reference is None:
                return
            future = await self._submit(reference)
            if future is not None:
                await future

    async def _submit(self, reference: CaseReference) -> Optional[asyncio.Future]:
        outcome = load_case(reference)
        if isinstance(outcome, Failed):
            self.failed_before_submit += 1
            self.reporter.report_failure(
                reference,
                reason=outcome.error.error_code,
                error=outcome.error,
                project=outcome.project,
                name=outcome.name,
            )
            return None
        return await self._enqueue(outcome.bundle)

    async def _enqueue(self, bundle: CaseBundle) -> Optional[asyncio.Future]:
        token = next(self._tokens)
        record = CaseRecord(
            project=bundle.project,
            name=bundle.name,
            config=dict(bundle.config),
            run=bundle.run,
            reference=bundle.reference,
            token=token,
        )
        future = asyncio.get_running_loop().create_future()
        self._settlements[token] = future
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)

        try:
            accepted = await self.engine.queue(url=bundle.entry_url, case=record)
        except Exception as exc:  # noqa: BLE001
            self._abandon(token)
            error = EnqueueError(f"failed to enqueue case: {describe_error(exc)}")
            error.__cause__ = exc
            self.reporter.report_failure(
                bundle.reference,
                reason=ErrorCode.ENQUEUE,
                error=error,
                project=bundle.project,
                name=bundle.name,
            )
            return None

        if not accepted:
            self._abandon(token)
            self.reporter.report_failure(
                bundle.reference,
                reason=ErrorCode.DUPLICATE_SKIPPED,
                error=EnqueueError(
                    f"entry url already crawled: {bundle.entry_url}",
                    error_code=ErrorCode.DUPLICATE_SKIPPED,
                ),
                project=bundle.project,
                name=bundle.name,
            )
            return None

        self.submitted += 1
        _autotest_event(
            "dispatch",
            phase="submitted",
            token=token,
            project=bundle.project,
            name=bundle.name,
            in_flight=self.in_flight,
        )
        return future

    def _abandon(self, token: int) -> None:
        if self._settlements.pop(token, None) is not None:
            self.in_flight -= 1
        self.failed_before_submit += 1

    # -- lifecycle --------------------------------------------------------

    async def run(self, engine: CrawlEngine) -> None:
        """Drain the registry through ``engine`` and shut the engine down."""

        self.engine = engine
        try:
            slots = initial_slot_count(self.concurrency, getattr(engine, "startup_slots", 0))
            await self.replenish(slots)
            if self._workers:
                await asyncio.gather(*self._workers)
            await engine.on_idle()
            _autotest_event(
                "dispatch",
                phase="idle",
                submitted=self.submitted,
                settled=self.settled,
                failed_before_submit=self.failed_before_submit,
                peak_in_flight=self.peak_in_flight,
            )
        finally:
            await engine.close()


__all__ = ["Dispatcher", "EnqueueError", "RunRoutineError", "initial_slot_count"]
