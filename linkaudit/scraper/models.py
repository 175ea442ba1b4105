"""Data models for the scraper pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ReferenceKind(str, Enum):
    """How a target was referenced on the page."""

    HYPERLINK = "hyperlink"
    IMAGE = "image"


@dataclass
class RawPage:
    """The raw HTTP response for the analysed page.

    ``url`` is the final address after redirects; relative links on the page
    resolve against it.
    """

    url: str
    html: str
    status_code: int
    elapsed_ms: int = 0


@dataclass(frozen=True)
class LinkCandidate:
    """A link or image reference found in the markup, before resolution."""

    raw_target: str
    anchor_text: str
    reference_kind: ReferenceKind
