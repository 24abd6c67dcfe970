import asyncio
import logging

import httpx

from contact_agent.schemas.tasks import ExtractionResult

logger = logging.getLogger(__name__)


class ResultDispatcher:
    """Best-effort delivery of extraction results to a webhook."""

    def __init__(self, client: httpx.AsyncClient, default_endpoint: str = "") -> None:
        self._client = client
        self._default_endpoint = default_endpoint
        self._pending: set[asyncio.Task] = set()

    def resolve_endpoint(self, endpoint: str | None) -> str | None:
        return endpoint or self._default_endpoint or None

    async def deliver(self, endpoint: str, result: ExtractionResult) -> bool:
        """POST the result. Failures are logged, never raised."""
        try:
            resp = await self._client.post(
                endpoint, json=result.model_dump(mode="json", by_alias=True, exclude_none=True)
            )
            resp.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Result delivery to %s failed: %s", endpoint, exc)
            return False
        logger.info("Delivered result for %s to %s", result.source_url, endpoint)
        return True

    def schedule(self, endpoint: str | None, result: ExtractionResult) -> asyncio.Task | None:
        """Deliver in the background so the caller's response is not delayed."""
        target = self.resolve_endpoint(endpoint)
        if not target:
            return None
        task = asyncio.create_task(self.deliver(target, result))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self, timeout: float = 10.0) -> None:
        """Wait for outstanding deliveries, e.g. on shutdown."""
        if not self._pending:
            return
        _done, still_running = await asyncio.wait(set(self._pending), timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning("Cancelled %d undelivered results on shutdown", len(still_running))
