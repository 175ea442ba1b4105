"""Link extraction: turns raw page markup into :class:`LinkCandidate` records."""

from __future__ import annotations

import re
from typing import Iterator

from bs4 import BeautifulSoup

from linkaudit.scraper.models import LinkCandidate, ReferenceKind


# ---------------------------------------------------------------------------
# Extraction patterns
# ---------------------------------------------------------------------------
# An anchor without a closing tag ends where the next anchor starts.
# ``data-href``/``data-src`` are not link attributes.
_ANCHOR_RE = re.compile(
    r"""<a\b[^>]*?(?<![\w-])href\s*=\s*["']([^"']+)["'][^>]*>(.*?)(?:</a\s*>|(?=<a\b)|\Z)""",
    re.IGNORECASE | re.DOTALL,
)
_IMAGE_RE = re.compile(
    r"""<img\b[^>]*?(?<![\w-])src\s*=\s*["']([^"']+)["']""",
    re.IGNORECASE,
)
_WHITESPACE_RE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _anchor_text(inner_html: str) -> str:
    """Return the visible text of an anchor's inner markup.

    Nested tags (``<span>``, ``<strong>``, icons...) are dropped and runs of
    whitespace are collapsed to a single space.
    """
    if "<" not in inner_html:
        text = inner_html
    else:
        text = BeautifulSoup(inner_html, "html.parser").get_text(separator=" ")
    return _WHITESPACE_RE.sub(" ", text).strip()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_candidates(html: str) -> Iterator[LinkCandidate]:
    """Yield every hyperlink and image reference found in *html*.

    Anchors are yielded first in document order, then images.  No filtering
    by scheme happens here; ``mailto:``/``tel:`` targets are yielded like any
    other.  Markup the patterns cannot match is simply skipped.
    """
    for match in _ANCHOR_RE.finditer(html):
        target = match.group(1).strip()
        if target:
            yield LinkCandidate(
                raw_target=target,
                anchor_text=_anchor_text(match.group(2)),
                reference_kind=ReferenceKind.HYPERLINK,
            )

    for match in _IMAGE_RE.finditer(html):
        target = match.group(1).strip()
        if target:
            yield LinkCandidate(
                raw_target=target,
                anchor_text="",
                reference_kind=ReferenceKind.IMAGE,
            )
