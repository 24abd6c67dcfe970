import asyncio
import logging
import time
from collections.abc import Iterable, Sequence

from playwright.async_api import Error as PlaywrightError

from contact_agent.mappers.exclusion import Blocklist, first_allowed, normalize
from contact_agent.mappers.patterns import MATCHERS
from contact_agent.mappers.regions import REGION_HEURISTICS, Heuristic, has_marker, select_region
from contact_agent.schemas.extraction import FieldKind, FieldOutcome, Region
from contact_agent.services.page_reader import PageReader

logger = logging.getLogger(__name__)


class Clock:
    """Monotonic time source; replaced in tests to simulate slow rendering."""

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class ExtractionPipeline:
    """Finds at most one phone and one email on a page.

    For each requested field, in order: explicit absence marker, primary
    content panel, polled body text until ``poll_deadline``, then the raw
    markup. A field nothing resolves ends as unresolved, which is a normal
    outcome.
    """

    def __init__(
        self,
        blocklist: Blocklist,
        *,
        poll_interval: float = 0.5,
        poll_deadline: float = 15.0,
        panel_keywords: Sequence[str] = ("summary", "conversation"),
        absence_markers: dict[FieldKind, Sequence[str]] | None = None,
        heuristics: Sequence[Heuristic] = REGION_HEURISTICS,
        clock: Clock | None = None,
    ) -> None:
        self._blocklist = blocklist
        self._poll_interval = poll_interval
        self._poll_deadline = poll_deadline
        self._panel_keywords = tuple(panel_keywords)
        self._absence_markers = absence_markers or {
            FieldKind.phone: ("no phone number",),
            FieldKind.email: ("no email address",),
        }
        self._heuristics = tuple(heuristics)
        self._clock = clock or Clock()

    async def run(
        self,
        reader: PageReader,
        fields: Iterable[FieldKind],
        *,
        budget: float | None = None,
    ) -> dict[FieldKind, FieldOutcome]:
        """Resolve ``fields``; anything still open when ``budget`` runs out is unresolved."""
        pending = list(dict.fromkeys(fields))
        outcomes: dict[FieldKind, FieldOutcome] = {}
        try:
            async with asyncio.timeout(budget):
                await self._search(reader, pending, outcomes)
        except TimeoutError:
            logger.warning("Extraction deadline reached with %s unresolved", pending)
            for field in pending:
                outcomes[field] = FieldOutcome(field=field, strategy="timeout")
        return outcomes

    async def _search(
        self,
        reader: PageReader,
        pending: list[FieldKind],
        outcomes: dict[FieldKind, FieldOutcome],
    ) -> None:
        text = await reader.body_text()
        self._check_absence(text, pending, outcomes)
        if not pending:
            return

        region = select_region(await reader.blocks(), self._panel_keywords, self._heuristics)
        if region:
            self._resolve(region, Region.panel, pending, outcomes)

        deadline = self._clock.now() + self._poll_deadline
        while pending:
            self._resolve(text, Region.body, pending, outcomes)
            if not pending:
                return
            remaining = deadline - self._clock.now()
            if remaining <= 0:
                break
            await self._clock.sleep(min(self._poll_interval, remaining))
            text = await self._poll_body(reader)
            self._check_absence(text, pending, outcomes)

        if not pending:
            return
        logger.debug("Body poll exhausted for %s, scanning raw markup", pending)
        self._resolve(await reader.raw_markup(), Region.markup, pending, outcomes)

        for field in list(pending):
            pending.remove(field)
            outcomes[field] = FieldOutcome(field=field, strategy="exhausted")

    async def _poll_body(self, reader: PageReader) -> str:
        try:
            return await reader.body_text()
        except PlaywrightError as exc:
            # Client-side redirects tear down the execution context mid-render
            logger.debug("Body read failed during poll, retrying: %s", exc.message)
            return ""

    def _check_absence(
        self,
        text: str,
        pending: list[FieldKind],
        outcomes: dict[FieldKind, FieldOutcome],
    ) -> None:
        for field in list(pending):
            if has_marker(text, self._absence_markers.get(field, ())):
                logger.info("Page states no %s, skipping search", field)
                pending.remove(field)
                outcomes[field] = FieldOutcome(field=field, strategy="absent")

    def _resolve(
        self,
        text: str,
        region: Region,
        pending: list[FieldKind],
        outcomes: dict[FieldKind, FieldOutcome],
    ) -> None:
        for field in list(pending):
            candidate = first_allowed(MATCHERS[field](text, region), self._blocklist)
            if candidate is None:
                continue
            pending.remove(field)
            outcomes[field] = FieldOutcome(
                field=field, value=normalize(candidate), strategy=region.value
            )
            logger.info("Resolved %s from %s", field, region)
