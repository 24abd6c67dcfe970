import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from playwright.async_api import BrowserContext, Page, Response, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from contact_agent.exceptions.custom import NavigationError
from contact_agent.services.session_store import SessionStore

logger = logging.getLogger(__name__)

_LAUNCH_ARGS = [
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-extensions",
    "--no-first-run",
    "--disable-default-apps",
    "--disable-blink-features=AutomationControlled",
]

_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)


@dataclass
class BrowserSession:
    context: BrowserContext
    page: Page


class BrowserRuntime:
    """Launches one isolated browser per request and always tears it down."""

    def __init__(
        self,
        store: SessionStore,
        *,
        headless: bool = True,
        navigation_timeout: float = 30.0,
        settle_timeout: float = 15.0,
    ) -> None:
        self._store = store
        self._headless = headless
        self._navigation_timeout_ms = navigation_timeout * 1000
        self._settle_timeout_ms = settle_timeout * 1000

    @asynccontextmanager
    async def session(self, *, with_state: bool = False) -> AsyncIterator[BrowserSession]:
        """Yield a fresh context, loaded from the persisted state when asked and present."""
        state = self._store.load() if with_state else None
        async with async_playwright() as pw:
            browser = await pw.chromium.launch(headless=self._headless, args=_LAUNCH_ARGS)
            try:
                context = await browser.new_context(storage_state=state, user_agent=_USER_AGENT)
                try:
                    page = await context.new_page()
                    yield BrowserSession(context=context, page=page)
                finally:
                    try:
                        await context.close()
                    except PlaywrightError:
                        logger.warning("Failed to close browser context", exc_info=True)
            finally:
                await browser.close()

    async def navigate(
        self,
        page: Page,
        url: str,
        *,
        settle: bool = False,
        where: str | None = None,
    ) -> Response | None:
        """Load ``url`` until the DOM is parsed; optionally wait for the network to settle."""
        try:
            response = await page.goto(
                url, wait_until="domcontentloaded", timeout=self._navigation_timeout_ms
            )
        except PlaywrightError as exc:
            raise NavigationError(f"Could not load {url}: {exc.message}", where=where) from exc

        if settle:
            try:
                await page.wait_for_load_state("networkidle", timeout=self._settle_timeout_ms)
            except PlaywrightTimeoutError:
                logger.debug("Network did not settle for %s, continuing", url)
        return response
