"""URL resolution, scheme filtering, de-duplication and classification."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional
from urllib.parse import urldefrag, urljoin, urlsplit

from linkaudit.analysis.models import CheckedLink, LinkClassification
from linkaudit.scraper.models import LinkCandidate, ReferenceKind

FETCHABLE_SCHEMES = ("http", "https")
INVALID_URL_ERROR = "Invalid URL or Connection Error"


class _UnresolvableTarget(ValueError):
    pass


@dataclass(frozen=True)
class ResolvedLink:
    """A unique, fetchable absolute URL waiting to be verified."""

    absolute_url: str
    classification: LinkClassification
    anchor_text: str
    reference_kind: ReferenceKind


@dataclass
class Resolution:
    links: list[ResolvedLink] = field(default_factory=list)
    invalid: list[CheckedLink] = field(default_factory=list)
    skipped_external: int = 0


def _hostname(url: str) -> Optional[str]:
    try:
        return urlsplit(url).hostname
    except ValueError:
        return None


def classify(url: str, page_hostname: Optional[str]) -> LinkClassification:
    """Internal when *url* has the same hostname as the analysed page."""
    if _hostname(url) == page_hostname:
        return LinkClassification.INTERNAL
    return LinkClassification.EXTERNAL


def _resolve(raw_target: str, base_url: str) -> str:
    """Return the absolute, fragment-free form of *raw_target*.

    Raises:
        _UnresolvableTarget: If the target cannot form a valid URL.
    """
    try:
        absolute, _fragment = urldefrag(urljoin(base_url, raw_target))
        parts = urlsplit(absolute)
        parts.port  # raises ValueError for an out-of-range port
    except ValueError as exc:
        raise _UnresolvableTarget(str(exc)) from exc

    if parts.scheme in FETCHABLE_SCHEMES and not parts.hostname:
        raise _UnresolvableTarget(f"missing host in {raw_target!r}")
    return absolute


def resolve_candidates(
    candidates: Iterable[LinkCandidate],
    base_url: str,
    include_external: bool = True,
) -> Resolution:
    """Turn raw candidates into the set of links a job must verify.

    * Targets that cannot be resolved become broken :class:`CheckedLink`
      entries straight away (status 0, classified internal).
    * Non-http(s) targets (``mailto:``, ``tel:``, ``javascript:``...) are
      dropped without a trace.
    * Each absolute URL is kept once; the first occurrence wins.
    * With ``include_external=False`` external links are dropped too.
    """
    page_hostname = _hostname(base_url)
    visited: set[str] = set()
    resolution = Resolution()

    for candidate in candidates:
        try:
            absolute = _resolve(candidate.raw_target, base_url)
        except _UnresolvableTarget:
            if candidate.raw_target in visited:
                continue
            visited.add(candidate.raw_target)
            resolution.invalid.append(
                CheckedLink(
                    absolute_url=candidate.raw_target,
                    classification=LinkClassification.INTERNAL,
                    status_code=0,
                    error_type=INVALID_URL_ERROR,
                    latency_ms=0,
                    source_url=base_url,
                    anchor_text=candidate.anchor_text,
                    reference_kind=candidate.reference_kind,
                )
            )
            continue

        if urlsplit(absolute).scheme not in FETCHABLE_SCHEMES:
            continue
        if absolute in visited:
            continue
        visited.add(absolute)

        classification = classify(absolute, page_hostname)
        if classification is LinkClassification.EXTERNAL and not include_external:
            resolution.skipped_external += 1
            continue

        resolution.links.append(
            ResolvedLink(
                absolute_url=absolute,
                classification=classification,
                anchor_text=candidate.anchor_text,
                reference_kind=candidate.reference_kind,
            )
        )

    return resolution
