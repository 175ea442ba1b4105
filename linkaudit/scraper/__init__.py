"""Scraper package — page fetch & link extraction."""

from linkaudit.scraper.extractor import extract_candidates
from linkaudit.scraper.fetcher import fetch_page
from linkaudit.scraper.models import LinkCandidate, RawPage, ReferenceKind

__all__ = ["fetch_page", "extract_candidates", "RawPage", "LinkCandidate", "ReferenceKind"]
