"""Human-readable advice derived from a job's broken links."""

from __future__ import annotations

from typing import Sequence

from linkaudit.analysis.models import CheckedLink, LinkClassification
from linkaudit.analysis.resolver import INVALID_URL_ERROR
from linkaudit.scraper.models import ReferenceKind

NO_ISSUES = "No broken links found. Re-run the analysis periodically to catch regressions."


def build_recommendations(broken_links: Sequence[CheckedLink]) -> list[str]:
    """Return one recommendation per failure pattern present in *broken_links*.

    The order is fixed so the same set of broken links always yields the same
    list.
    """
    if not broken_links:
        return [NO_ISSUES]

    codes = [link.status_code for link in broken_links]
    errors = {link.error_type for link in broken_links}
    recommendations: list[str] = []

    not_found = codes.count(404) + codes.count(410)
    if not_found:
        recommendations.append(
            f"Fix or remove {not_found} link(s) pointing to missing pages (404/410)."
        )
        recommendations.append("Add 301 redirects for pages that have moved.")
    if any(code >= 500 for code in codes):
        recommendations.append(
            "Some targets returned server errors (5xx); check them again later or contact their owners."
        )
    if any(code in (401, 403) for code in codes):
        recommendations.append(
            "Some targets deny access (401/403); link to public pages or remove the links."
        )
    if "Timeout" in errors:
        recommendations.append(
            "Some links timed out; consider increasing the link check timeout before treating them as dead."
        )
    if "SSL Error" in errors:
        recommendations.append("Review targets with SSL/certificate errors.")
    if "DNS Error" in errors:
        recommendations.append("Some domains no longer resolve; replace or remove those links.")
    if INVALID_URL_ERROR in errors:
        recommendations.append("Correct malformed link targets in the page markup.")
    if any(link.reference_kind is ReferenceKind.IMAGE for link in broken_links):
        recommendations.append("Replace or remove images that fail to load.")
    if any(link.classification is LinkClassification.EXTERNAL for link in broken_links):
        recommendations.append(
            "Verify connectivity with external sites and update outdated external links."
        )

    return recommendations
