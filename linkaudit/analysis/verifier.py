"""Per-link existence checks.

``verify_link`` never raises for network problems: every failure is folded
into the returned :class:`CheckedLink` so one dead target cannot abort the
rest of the job.  Only ``asyncio.CancelledError`` escapes, which is how job
cancellation reaches in-flight requests.
"""

from __future__ import annotations

import time
from typing import Optional

import httpx

from linkaudit.analysis.models import CheckedLink
from linkaudit.analysis.resolver import INVALID_URL_ERROR, ResolvedLink
from linkaudit.config import settings
from linkaudit.log import get_logger

logger = get_logger(__name__)

# Servers that refuse HEAD answer with one of these; fall back to GET.
_HEAD_UNSUPPORTED = (405, 501)

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo",
    "name resolution",
    "no address associated",
)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def describe_error(exc: Exception) -> str:
    """Map a transport exception to the error label stored on the link."""
    if isinstance(exc, httpx.TimeoutException):
        return "Timeout"
    if isinstance(exc, httpx.TooManyRedirects):
        return "Redirect Loop"
    if isinstance(exc, (httpx.InvalidURL, httpx.UnsupportedProtocol)):
        return INVALID_URL_ERROR

    message = str(exc).lower()
    if "ssl" in message or "certificate" in message:
        return "SSL Error"
    if isinstance(exc, httpx.ConnectError):
        if "refused" in message:
            return "Connection Refused"
        if any(marker in message for marker in _DNS_MARKERS):
            return "DNS Error"
    return "Connection Failed"


def _is_transient(exc: Exception) -> bool:
    """Whether retrying the request could plausibly change the outcome."""
    return isinstance(exc, httpx.TransportError) and not isinstance(
        exc, httpx.UnsupportedProtocol
    )


async def _probe(client: httpx.AsyncClient, url: str, timeout: float) -> httpx.Response:
    """Issue a HEAD request, retrying once with a body-less GET if refused."""
    response = await client.head(url, timeout=timeout, follow_redirects=True)
    if response.status_code not in _HEAD_UNSUPPORTED:
        return response

    # Stream the GET and close it without reading the body.
    async with client.stream("GET", url, timeout=timeout, follow_redirects=True) as streamed:
        return streamed


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def verify_link(
    client: httpx.AsyncClient,
    link: ResolvedLink,
    source_url: str,
    timeout: Optional[float] = None,
    retries: Optional[int] = None,
) -> CheckedLink:
    """Check that *link* answers with a 2xx response.

    Args:
        client: Shared async client for the run.
        link: The resolved, de-duplicated target.
        source_url: Page the link was found on.
        timeout: Seconds allowed per attempt.  Defaults to
            ``settings.link_timeout``.
        retries: Extra attempts after a transport failure (timeouts,
            connection errors).  HTTP error responses are never retried.
            Defaults to ``settings.link_check_retries``.

    Returns:
        A :class:`CheckedLink`; ``status_code`` is 0 when no response was
        received.  ``latency_ms`` covers every attempt.
    """
    timeout = settings.link_timeout if timeout is None else timeout
    retries = settings.link_check_retries if retries is None else retries
    url = link.absolute_url

    status_code = 0
    error_type = "Connection Failed"
    start = time.perf_counter()

    for attempt in range(1 + max(0, retries)):
        try:
            response = await _probe(client, url, timeout)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            error_type = describe_error(exc)
            logger.debug("[VERIFY] %s attempt %d failed: %r", url, attempt + 1, exc)
            if not _is_transient(exc):
                break
            continue
        except Exception:
            logger.exception("[VERIFY] unexpected error checking %s", url)
            error_type = "Connection Failed"
            break

        status_code = response.status_code
        if response.is_success:
            error_type = ""
        else:
            error_type = response.reason_phrase or f"HTTP {status_code}"
        break

    latency_ms = int((time.perf_counter() - start) * 1000)
    checked = CheckedLink(
        absolute_url=url,
        classification=link.classification,
        status_code=status_code,
        error_type=error_type,
        latency_ms=latency_ms,
        source_url=source_url,
        anchor_text=link.anchor_text,
        reference_kind=link.reference_kind,
    )
    if checked.is_broken:
        logger.info("[VERIFY] ✗ %s → %s %s", url, status_code, error_type)
    return checked
