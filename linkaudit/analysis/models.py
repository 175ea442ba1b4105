"""Dataclass models for analysis jobs and their results.

These are plain Python objects – not ORM models.  The store backends
serialise / deserialise to and from these types, and the ``to_dict`` helpers
produce the camelCase payloads served by the HTTP API.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from linkaudit.scraper.models import ReferenceKind


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# ---------------------------------------------------------------------------
# Job lifecycle
# ---------------------------------------------------------------------------

class JobStatus(str, Enum):
    """Analysis job state machine."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.RUNNING, JobStatus.FAILED, JobStatus.CANCELLED}),
    JobStatus.RUNNING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    """Return ``True`` if a job in *current* may move to *target*."""
    return target in _TRANSITIONS[current]


class LinkClassification(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"


@dataclass
class AnalysisJob:
    id: str
    target_url: str
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    pages_analyzed: int = 0
    links_found: int = 0
    broken_link_count: int = 0
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    owner_id: Optional[str] = None
    include_external: bool = False
    timeout: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "analysisId": self.id,
            "url": self.target_url,
            "status": self.status.value,
            "progress": self.progress,
            "pagesAnalyzed": self.pages_analyzed,
            "linksFound": self.links_found,
            "brokenLinks": self.broken_link_count,
            "startedAt": _iso(self.started_at),
            "completedAt": _iso(self.completed_at),
            "error": self.error,
        }


# ---------------------------------------------------------------------------
# Verification results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CheckedLink:
    """Outcome of verifying one unique target URL."""

    absolute_url: str
    classification: LinkClassification
    status_code: int
    error_type: str
    latency_ms: int
    source_url: str = ""
    anchor_text: str = ""
    reference_kind: ReferenceKind = ReferenceKind.HYPERLINK

    @property
    def is_broken(self) -> bool:
        """A link is broken unless it produced a 2xx response."""
        return not 200 <= self.status_code < 300

    def to_dict(self) -> dict[str, Any]:
        return {
            "sourceUrl": self.source_url,
            "targetUrl": self.absolute_url,
            "statusCode": self.status_code,
            "errorType": self.error_type,
            "linkType": self.classification.value,
            "linkText": self.anchor_text,
            "referenceKind": self.reference_kind.value,
            "responseTime": self.latency_ms,
        }


def compute_health_score(total_links: int, broken_links: int) -> int:
    """Percentage of links that are not broken, rounded half up, in ``[0, 100]``.

    A page without links scores 100.
    """
    if total_links <= 0:
        return 100
    score = math.floor(100 * (total_links - broken_links) / total_links + 0.5)
    return max(0, min(100, score))


@dataclass(frozen=True)
class AnalysisSummary:
    total_pages: int
    total_links: int
    broken_links: int
    health_score: int
    analysis_time_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalPages": self.total_pages,
            "totalLinks": self.total_links,
            "brokenLinks": self.broken_links,
            "healthScore": self.health_score,
            "analysisTime": self.analysis_time_ms,
        }


@dataclass(frozen=True)
class AnalysisResult:
    """Terminal payload of a completed job.  Immutable once created."""

    summary: AnalysisSummary
    broken_links: tuple[CheckedLink, ...] = ()
    recommendations: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "brokenLinks": [link.to_dict() for link in self.broken_links],
            "recommendations": list(self.recommendations),
        }


@dataclass
class HistoryPage:
    items: list[AnalysisJob] = field(default_factory=list)
    total: int = 0
    page: int = 1
    total_pages: int = 0
