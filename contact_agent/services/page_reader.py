import logging
from typing import Protocol

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, Response

from contact_agent.mappers.regions import blocks_from_html, decode_markup
from contact_agent.schemas.extraction import PageBlock

logger = logging.getLogger(__name__)

BODY_TEXT_JS = "() => document.body ? document.body.innerText : ''"


class PageReader(Protocol):
    async def body_text(self) -> str: ...

    async def blocks(self) -> list[PageBlock]: ...

    async def raw_markup(self) -> str: ...


class PlaywrightPageReader:
    """Reads the three content regions of a navigated page."""

    def __init__(self, page: Page, response: Response | None = None) -> None:
        self._page = page
        self._response = response

    async def body_text(self) -> str:
        return await self._page.evaluate(BODY_TEXT_JS) or ""

    async def blocks(self) -> list[PageBlock]:
        return blocks_from_html(await self._page.content())

    async def raw_markup(self) -> str:
        body = ""
        if self._response is not None:
            try:
                body = await self._response.text()
            except PlaywrightError:
                logger.debug("Navigation response body unavailable, using rendered DOM")
        if not body:
            body = await self._page.content()
        return decode_markup(body)
