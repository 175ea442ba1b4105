"""Async HTTP fetcher for the page under analysis."""

from __future__ import annotations

import time

import httpx

from linkaudit.config import settings
from linkaudit.log import get_logger
from linkaudit.scraper.models import RawPage

logger = get_logger(__name__)


def default_headers() -> dict[str, str]:
    """Headers sent with every outgoing request."""
    return {"User-Agent": settings.user_agent}


async def fetch_page(
    client: httpx.AsyncClient,
    url: str,
    timeout: float | None = None,
) -> RawPage:
    """Fetch *url* and return a :class:`RawPage`.

    Redirects are followed, so ``RawPage.url`` may differ from *url*.

    Args:
        client: Shared async client for the run.
        url: Absolute http(s) address of the page.
        timeout: Seconds allowed for the whole request.  Defaults to
            ``settings.page_timeout``.

    Raises:
        httpx.TimeoutException: If the page does not answer in time.
        httpx.HTTPStatusError: If the server returns a 4xx/5xx status code.
        httpx.HTTPError: For any other transport failure.
    """
    timeout = settings.page_timeout if timeout is None else timeout
    logger.info("[FETCH] %s (timeout=%.1fs)", url, timeout)

    start = time.perf_counter()
    response = await client.get(url, timeout=timeout, follow_redirects=True)
    response.raise_for_status()
    elapsed_ms = int((time.perf_counter() - start) * 1000)

    return RawPage(
        url=str(response.url),
        html=response.text,
        status_code=response.status_code,
        elapsed_ms=elapsed_ms,
    )
