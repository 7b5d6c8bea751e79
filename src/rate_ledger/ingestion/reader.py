"""Async HTTP reader for per-currency reference rate series."""

from __future__ import annotations

import logging

import httpx

from rate_ledger.core.config import SourceConfig
from rate_ledger.core.exceptions import FetchError
from rate_ledger.core.models import Observation, SourceId
from rate_ledger.ingestion.parser import SeriesParser

logger = logging.getLogger(__name__)


class SourceReader:
    """Fetches one series document per call and parses it.

    No retries: a timeout, transport error or non-2xx status fails the
    call with FetchError and the caller decides what to do.

    Use via `async with SourceReader(config) as reader:`.
    """

    def __init__(
        self,
        config: SourceConfig,
        parser: SeriesParser | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._parser = parser or SeriesParser()
        self._client = httpx.AsyncClient(
            headers={"User-Agent": config.user_agent},
            timeout=httpx.Timeout(config.request_timeout),
            follow_redirects=True,
            transport=transport,
        )

    async def __aenter__(self) -> SourceReader:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client. Called automatically by __aexit__."""
        await self._client.aclose()

    async def fetch(self, source_id: SourceId) -> list[Observation]:
        """Download and parse one series.

        Args:
            source_id: URL of the series document.

        Returns:
            Observations in published order.

        Raises:
            FetchError: Timeout, connection failure or non-2xx status.
            ParseError: The payload is not a series document.
        """
        payload = await self.fetch_document(source_id)
        observations = self._parser.parse(payload, source_id)
        logger.info("Fetched %d observations from %s", len(observations), source_id)
        return observations

    async def fetch_document(self, url: str) -> bytes:
        """GET a URL and return the raw body of a 2xx response."""
        try:
            response = await self._client.get(url)
        except httpx.TimeoutException as e:
            raise FetchError(
                f"Timed out after {self._config.request_timeout}s: {url}",
                context={"url": url, "error": str(e)},
            ) from e
        except httpx.HTTPError as e:
            raise FetchError(
                f"Request failed: {url}",
                context={"url": url, "error": str(e)},
            ) from e

        if not response.is_success:
            raise FetchError(
                f"HTTP {response.status_code} from {url}",
                context={"url": url, "status_code": response.status_code},
            )
        return response.content
