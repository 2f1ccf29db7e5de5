"""Page-pool crawl engine over ``playwright.async_api``.

The dispatcher only relies on the :class:`CrawlEngine` protocol. The
Playwright implementation owns one browser and one context, runs up to
``max_concurrency`` pages at once, navigates each submission's URL (retrying
navigation up to ``retry_count`` times), hands the loaded page to the
``custom_crawl`` hook and finally calls ``on_finish`` with the result.
"""
from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Set

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from . import config
from .error_codes import AutotestError, ErrorCode, describe_error
from .logging_utils import _autotest_event
from .utils import LOGGER

PASS = "PASS"
FAIL = "FAIL"

# Interrupts and task cancellation still settle the case, then propagate.
_PROPAGATE = (KeyboardInterrupt, SystemExit, asyncio.CancelledError)


class EngineClosedError(AutotestError):
    """A submission arrived after :meth:`PlaywrightEngine.close`."""

    error_code = ErrorCode.ENQUEUE


class NavigationError(AutotestError):
    """The entry URL could not be loaded within the retry budget."""

    error_code = ErrorCode.NAVIGATION


@dataclass
class CaseRecord:
    """The ``case`` travelling through the engine for one submission."""

    project: Optional[str]
    name: Optional[str]
    config: Dict[str, Any]
    run: Callable[..., Any]
    reference: Any = None
    token: Optional[int] = None
    status: Optional[str] = None
    error: Optional[str] = None


@dataclass
class SubmissionOptions:
    url: str
    case: CaseRecord
    wait_until: str = "networkidle"
    timeout_ms: int = 0
    retry_count: int = 0


@dataclass
class SubmissionResult:
    url: str
    case: CaseRecord
    result: Any = None
    response_status: Optional[int] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    attempts: int = 0


CustomCrawl = Callable[[Any, "CrawlHelper", SubmissionOptions], Awaitable[Any]]
OnFinish = Callable[[SubmissionResult], Any]


@dataclass
class EngineOptions:
    max_concurrency: int = 10
    headless: bool = False
    executable_path: Optional[str] = None
    retry_count: int = 0
    viewport: Optional[Dict[str, int]] = None
    args: tuple = ()
    ignore_https_errors: bool = True
    timeout_ms: int = 0
    wait_until: str = "networkidle"
    wait_for_ms: int = 500
    skip_duplicates: bool = False
    evaluate_page: Optional[str] = None
    custom_crawl: Optional[CustomCrawl] = None
    on_finish: Optional[OnFinish] = None
    utils: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: config.EngineSettings, **hooks: Any) -> "EngineOptions":
        return cls(
            max_concurrency=settings.max_concurrency,
            headless=settings.headless,
            executable_path=settings.executable_path,
            retry_count=settings.retry_count,
            viewport=settings.viewport,
            args=tuple(settings.args),
            timeout_ms=settings.timeout_ms,
            wait_until=settings.wait_until,
            wait_for_ms=settings.wait_for_ms,
            skip_duplicates=settings.skip_duplicates,
            **hooks,
        )


class CrawlEngine(Protocol):
    """Interface the dispatcher consumes."""

    startup_slots: int

    async def queue(self, *, url: str, case: CaseRecord) -> bool: ...

    async def on_idle(self) -> None: ...

    async def close(self) -> None: ...


class CrawlHelper:
    """Second argument of a case routine: access to the default crawl."""

    def __init__(self, page: Any, options: SubmissionOptions, engine_options: EngineOptions) -> None:
        self.page = page
        self.options = options
        self.utils = engine_options.utils
        self.logger = LOGGER
        self._evaluate_page = engine_options.evaluate_page

    async def crawl(self) -> Dict[str, Any]:
        """Evaluate the configured page expression and return the result."""

        result = None
        if self._evaluate_page:
            result = await self.page.evaluate(self._evaluate_page)
        return {"url": self.page.url, "result": result}

    async def soup(self) -> BeautifulSoup:
        """Return the current page HTML parsed with BeautifulSoup."""

        html = await self.page.content()
        return BeautifulSoup(html, "html5lib")


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class PlaywrightEngine:
    """Bounded page pool around a single Chromium browser."""

    # Launching does not open a page that counts against the pool.
    startup_slots = 0

    def __init__(self, options: EngineOptions) -> None:
        self.options = options
        self._semaphore = asyncio.Semaphore(max(1, options.max_concurrency))
        self._idle = asyncio.Event()
        self._idle.set()
        self._pending = 0
        self._seen_urls: Set[str] = set()
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False
        self._playwright = None
        self._browser = None
        self._context = None

    @classmethod
    async def launch(cls, options: EngineOptions) -> "PlaywrightEngine":
        engine = cls(options)
        await engine._start()
        return engine

    async def _start(self) -> None:
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.options.headless,
            executable_path=self.options.executable_path,
            args=list(self.options.args),
        )
        context_kwargs: Dict[str, Any] = {"ignore_https_errors": self.options.ignore_https_errors}
        if self.options.viewport:
            context_kwargs["viewport"] = self.options.viewport
        else:
            context_kwargs["no_viewport"] = True
        self._context = await self._browser.new_context(**context_kwargs)
        _autotest_event(
            "engine",
            phase="launch",
            headless=self.options.headless,
            max_concurrency=self.options.max_concurrency,
            executable_path=self.options.executable_path,
        )

    @property
    def pending(self) -> int:
        return self._pending

    async def queue(self, *, url: str, case: CaseRecord) -> bool:
        """Accept a submission; return ``False`` for a skipped duplicate URL."""

        if self._closed:
            raise EngineClosedError("engine is closed")
        if not isinstance(url, str) or not url.strip():
            raise ValueError(f"invalid submission url: {url!r}")
        if case is None or not callable(getattr(case, "run", None)):
            raise ValueError("submission has no runnable case")
        if self.options.skip_duplicates and url in self._seen_urls:
            _autotest_event("engine", phase="skip_duplicate", url=url)
            return False
        self._seen_urls.add(url)

        self._pending += 1
        self._idle.clear()
        task = asyncio.create_task(self._process(url, case))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _navigate(self, page: Any, url: str) -> tuple[Any, int]:
        attempts = 0
        last_error: Optional[BaseException] = None
        for attempt in range(self.options.retry_count + 1):
            attempts = attempt + 1
            try:
                response = await page.goto(
                    url,
                    wait_until=self.options.wait_until,
                    timeout=self.options.timeout_ms,
                )
                return response, attempts
            except PlaywrightError as exc:
                last_error = exc
                _autotest_event(
                    "engine",
                    phase="navigation_retry",
                    url=url,
                    attempt=attempts,
                    error=describe_error(exc),
                )
        raise NavigationError(
            f"failed to load {url} after {attempts} attempt(s): {describe_error(last_error)}"
        ) from last_error

    async def _process(self, url: str, case: CaseRecord) -> None:
        options = SubmissionOptions(
            url=url,
            case=case,
            wait_until=self.options.wait_until,
            timeout_ms=self.options.timeout_ms,
            retry_count=self.options.retry_count,
        )
        result = SubmissionResult(url=url, case=case)
        escaped: Optional[BaseException] = None
        try:
            async with self._semaphore:
                page = await self._context.new_page()
                try:
                    response, result.attempts = await self._navigate(page, url)
                    if response is not None:
                        result.response_status = response.status
                    if self.options.wait_for_ms:
                        await page.wait_for_timeout(self.options.wait_for_ms)
                    helper = CrawlHelper(page, options, self.options)
                    if self.options.custom_crawl is not None:
                        result.result = await self.options.custom_crawl(page, helper, options)
                    else:
                        result.result = await helper.crawl()
                finally:
                    await page.close()
        except BaseException as exc:  # noqa: BLE001
            result.error = describe_error(exc)
            result.error_code = getattr(exc, "error_code", ErrorCode.INTERNAL)
            _autotest_event(
                "error",
                phase="submission",
                url=url,
                error_code=result.error_code,
                error=result.error,
            )
            case.error = result.error
            case.status = FAIL
            if isinstance(exc, _PROPAGATE):
                escaped = exc
        else:
            if case.status is None:
                case.status = PASS
        try:
            await self._finish(result)
        finally:
            self._pending -= 1
            if self._pending == 0:
                self._idle.set()
        if escaped is not None:
            raise escaped

    async def _finish(self, result: SubmissionResult) -> None:
        if self.options.on_finish is None:
            return
        try:
            await _maybe_await(self.options.on_finish(result))
        except Exception as exc:  # noqa: BLE001
            _autotest_event("error", phase="on_finish", url=result.url, error=describe_error(exc))

    async def on_idle(self) -> None:
        """Wait until no submission is pending or in flight."""

        await self._idle.wait()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        if self._context is not None:
            await self._context.close()
        if self._browser is not None:
            await self._browser.close()
        if self._playwright is not None:
            await self._playwright.stop()
        _autotest_event("engine", phase="closed")


__all__ = [
    "CaseRecord",
    "CrawlEngine",
    "CrawlHelper",
    "EngineClosedError",
    "EngineOptions",
    "FAIL",
    "NavigationError",
    "PASS",
    "PlaywrightEngine",
    "SubmissionOptions",
    "SubmissionResult",
]
