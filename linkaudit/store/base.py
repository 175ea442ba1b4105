"""Job Store interface shared by every persistence backend.

The store is the only mutable state the engine shares between requests.  All
operations are keyed by job id and are synchronous; each backend guards its
own data with a lock so the API, the CLI and the asyncio runs can share one
instance.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Any, Optional

from linkaudit.analysis.models import AnalysisJob, AnalysisResult, HistoryPage, JobStatus


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class JobStoreError(Exception):
    """Base class for store failures."""


class JobNotFoundError(JobStoreError, KeyError):
    def __init__(self, job_id: str) -> None:
        super().__init__(job_id)
        self.job_id = job_id

    def __str__(self) -> str:
        return f"Analysis {self.job_id!r} not found"


class JobAlreadyExistsError(JobStoreError):
    pass


class InvalidTransitionError(JobStoreError):
    def __init__(self, job_id: str, current: JobStatus, target: JobStatus) -> None:
        super().__init__(f"Analysis {job_id!r} cannot move from {current.value} to {target.value}")
        self.current = current
        self.target = target


class ResultAlreadySavedError(JobStoreError):
    pass


# Fields ``update_status`` may merge into a job besides ``status``.
STATUS_PATCH_FIELDS = frozenset({"error", "completed_at"})


def check_patch(patch: dict[str, Any]) -> None:
    unknown = set(patch) - STATUS_PATCH_FIELDS
    if unknown:
        raise ValueError(f"Cannot patch field(s) {sorted(unknown)!r}")


def paginate(jobs: list[AnalysisJob], page: int, limit: int) -> HistoryPage:
    """Slice an already newest-first list of jobs into a 1-based page."""
    page = max(1, page)
    limit = max(1, limit)
    start = (page - 1) * limit
    return HistoryPage(
        items=jobs[start:start + limit],
        total=len(jobs),
        page=page,
        total_pages=math.ceil(len(jobs) / limit),
    )


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class JobStore(ABC):
    """Abstract base class for a job store backend."""

    @abstractmethod
    def create(self, job: AnalysisJob) -> AnalysisJob:
        """Register *job*.  Raises :class:`JobAlreadyExistsError` on a duplicate id."""

    @abstractmethod
    def get(self, job_id: str) -> Optional[AnalysisJob]:
        """Return a copy of the job, or ``None`` if unknown."""

    @abstractmethod
    def update_status(
        self, job_id: str, status: JobStatus, **patch: Any
    ) -> Optional[AnalysisJob]:
        """Move the job to *status* and merge *patch* (``error``, ``completed_at``).

        Returns the updated job, or ``None`` (no-op) if the id is unknown.

        Raises:
            InvalidTransitionError: If the state machine forbids the move.
        """

    @abstractmethod
    def update_progress(
        self,
        job_id: str,
        progress: int,
        pages_analyzed: int,
        links_found: int,
        broken_link_count: int,
    ) -> Optional[AnalysisJob]:
        """Record run counters.  ``progress`` never moves backwards."""

    @abstractmethod
    def save_result(self, job_id: str, result: AnalysisResult) -> None:
        """Attach the terminal payload; allowed once per job.

        Raises:
            JobNotFoundError: If the id is unknown.
            ResultAlreadySavedError: If a result is already attached.
        """

    @abstractmethod
    def get_result(self, job_id: str) -> Optional[AnalysisResult]:
        """Return the saved result, or ``None``."""

    @abstractmethod
    def list_history(
        self, user_id: Optional[str] = None, page: int = 1, limit: int = 10
    ) -> HistoryPage:
        """Newest-first page of jobs, optionally restricted to one owner."""

    @abstractmethod
    def delete(self, job_id: str) -> bool:
        """Remove a job and its result.  Returns ``False`` if it did not exist."""
