"""Input validation for analysis requests.

Validation happens before a job is created: a request that fails here never
reaches the store.
"""

from __future__ import annotations

import ipaddress
from typing import Optional
from urllib.parse import urlsplit

from linkaudit.config import settings

# Request timeout bounds, in milliseconds (the unit the HTTP API accepts).
MIN_TIMEOUT_MS = 1_000
MAX_TIMEOUT_MS = 30_000

_LOCAL_HOSTNAMES = {"localhost", "127.0.0.1", "0.0.0.0", "::1"}


class InvalidTargetError(ValueError):
    """Raised when an analysis request is rejected before it starts."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


def _is_private_host(hostname: str) -> bool:
    try:
        address = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return address.is_private and not address.is_loopback


def validate_target_url(url: Optional[str]) -> list[str]:
    """Return a list of problems with *url* (empty when it is acceptable).

    Accepts only absolute ``http``/``https`` addresses with a host.  Private
    network addresses are always refused; loopback hosts are refused when
    running in production.
    """
    if not url or not url.strip():
        return ["URL is required"]

    try:
        parts = urlsplit(url.strip())
        hostname = parts.hostname
        parts.port  # raises ValueError for an out-of-range port
    except ValueError:
        return ["URL is not valid"]

    errors: list[str] = []
    if parts.scheme not in ("http", "https"):
        errors.append("Only http and https URLs can be analysed")
    if not hostname:
        errors.append("URL is not valid")
        return errors

    if settings.is_production and hostname in _LOCAL_HOSTNAMES:
        errors.append("Local addresses cannot be analysed in production")
    if _is_private_host(hostname):
        errors.append("Private network addresses cannot be analysed")
    return errors


def validate_timeout_ms(timeout: Optional[int]) -> list[str]:
    """Check an optional page-fetch timeout expressed in milliseconds."""
    if timeout is None:
        return []
    if not MIN_TIMEOUT_MS <= timeout <= MAX_TIMEOUT_MS:
        return [f"Timeout must be between {MIN_TIMEOUT_MS}ms and {MAX_TIMEOUT_MS}ms"]
    return []


def ensure_valid_target(url: Optional[str]) -> str:
    """Return the stripped *url* or raise :class:`InvalidTargetError`."""
    errors = validate_target_url(url)
    if errors:
        raise InvalidTargetError(errors)
    return url.strip()  # type: ignore[union-attr]
