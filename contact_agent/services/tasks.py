import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, Response

from contact_agent.exceptions.custom import ExtractionError, TaskValidationError
from contact_agent.schemas.extraction import FieldKind, FieldOutcome
from contact_agent.schemas.tasks import (
    REQUIRED,
    TASK_ALIASES,
    ExtractionResult,
    ScreenshotResult,
    TaskKind,
    TaskRequest,
    TaskResult,
    TitleResult,
)
from contact_agent.services.browser import BrowserRuntime
from contact_agent.services.dispatcher import ResultDispatcher
from contact_agent.services.extraction import ExtractionPipeline
from contact_agent.services.page_reader import PageReader, PlaywrightPageReader
from contact_agent.services.session_manager import SessionManager

logger = logging.getLogger(__name__)

_FIELDS: dict[TaskKind, tuple[FieldKind, ...]] = {
    TaskKind.phone: (FieldKind.phone,),
    TaskKind.email: (FieldKind.email,),
    TaskKind.phone_email: (FieldKind.phone, FieldKind.email),
}


def parse_task(request: TaskRequest | None) -> tuple[TaskKind, str]:
    """Validate an inbound request before any browser work happens."""
    if request is None or not request.task:
        raise TaskValidationError("task is required")

    name = request.task.strip()
    kind = TASK_ALIASES.get(name)
    if kind is None:
        try:
            kind = TaskKind(name)
        except ValueError:
            raise TaskValidationError(f"Unsupported task: {name}") from None

    if not request.url:
        raise TaskValidationError("url is required", where=kind.value)
    return kind, request.url


@contextmanager
def _browser_errors(where: str) -> Iterator[None]:
    try:
        yield
    except PlaywrightError as exc:
        raise ExtractionError(exc.message, where=where) from exc


def _field_value(outcomes: dict[FieldKind, FieldOutcome], field: FieldKind) -> str | None:
    if field not in outcomes:
        return None
    return outcomes[field].value or REQUIRED


class TaskService:
    def __init__(
        self,
        runtime: BrowserRuntime,
        sessions: SessionManager,
        pipeline: ExtractionPipeline,
        dispatcher: ResultDispatcher,
        *,
        screenshot_path: str = "screenshot.png",
        request_deadline: float | None = None,
        reader_factory: Callable[[Page, Response | None], PageReader] = PlaywrightPageReader,
    ) -> None:
        self._runtime = runtime
        self._sessions = sessions
        self._pipeline = pipeline
        self._dispatcher = dispatcher
        self._screenshot_path = screenshot_path
        self._request_deadline = request_deadline
        self._reader_factory = reader_factory

    async def run(self, request: TaskRequest | None) -> TaskResult:
        kind, url = parse_task(request)
        if kind == TaskKind.title:
            return await self.title(url)
        if kind == TaskKind.screenshot:
            return await self.screenshot(url)
        return await self.extract(kind, url, callback_url=request.callback_url)

    async def title(self, url: str) -> TitleResult:
        with _browser_errors(TaskKind.title.value):
            async with self._runtime.session() as browser_session:
                await self._runtime.navigate(browser_session.page, url, where=TaskKind.title.value)
                title = await browser_session.page.title()
        return TitleResult(title=title, source_url=url)

    async def screenshot(self, url: str) -> ScreenshotResult:
        with _browser_errors(TaskKind.screenshot.value):
            async with self._runtime.session() as browser_session:
                page = browser_session.page
                await self._runtime.navigate(page, url, where=TaskKind.screenshot.value)
                await page.screenshot(path=self._screenshot_path, full_page=True)
        return ScreenshotResult(
            message="Screenshot saved", file=self._screenshot_path, source_url=url
        )

    async def extract(
        self, kind: TaskKind, url: str, *, callback_url: str | None = None
    ) -> ExtractionResult:
        fields = _FIELDS[kind]
        where = kind.value
        started = time.monotonic()

        with _browser_errors(where):
            async with self._runtime.session(with_state=True) as browser_session:
                outcome = await self._sessions.ensure_session(
                    browser_session.context, browser_session.page, where=where
                )
                logger.debug("Session check for %s: %s", url, outcome)

                navigation_started = time.monotonic()
                response = await self._runtime.navigate(
                    browser_session.page, url, settle=True, where=where
                )
                budget = None
                if self._request_deadline is not None:
                    budget = max(self._request_deadline - (time.monotonic() - navigation_started), 0.0)
                outcomes = await self._pipeline.run(
                    self._reader_factory(browser_session.page, response), fields, budget=budget
                )

        result = ExtractionResult(
            ok=any(o.value for o in outcomes.values()),
            phone=_field_value(outcomes, FieldKind.phone),
            email=_field_value(outcomes, FieldKind.email),
            source_url=url,
            elapsed_ms=int((time.monotonic() - started) * 1000),
        )
        logger.info(
            "Task %s for %s finished ok=%s in %dms", where, url, result.ok, result.elapsed_ms
        )
        self._dispatcher.schedule(callback_url, result)
        return result
