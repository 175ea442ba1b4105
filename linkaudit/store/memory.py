"""Volatile, process-local job store.

Everything lives in two dicts guarded by a lock.  Jobs are copied on the way
in and on the way out so callers can never mutate stored state by accident.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any, Optional

from linkaudit.analysis.models import (
    AnalysisJob,
    AnalysisResult,
    HistoryPage,
    JobStatus,
    can_transition,
)
from linkaudit.store.base import (
    InvalidTransitionError,
    JobAlreadyExistsError,
    JobNotFoundError,
    JobStore,
    ResultAlreadySavedError,
    check_patch,
    paginate,
)


class InMemoryJobStore(JobStore):
    def __init__(self) -> None:
        self._jobs: dict[str, AnalysisJob] = {}
        self._results: dict[str, AnalysisResult] = {}
        self._lock = threading.Lock()

    def create(self, job: AnalysisJob) -> AnalysisJob:
        with self._lock:
            if job.id in self._jobs:
                raise JobAlreadyExistsError(f"Analysis {job.id!r} already exists")
            self._jobs[job.id] = replace(job)
        return replace(job)

    def get(self, job_id: str) -> Optional[AnalysisJob]:
        with self._lock:
            job = self._jobs.get(job_id)
            return replace(job) if job else None

    def update_status(
        self, job_id: str, status: JobStatus, **patch: Any
    ) -> Optional[AnalysisJob]:
        check_patch(patch)
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            if not can_transition(job.status, status):
                raise InvalidTransitionError(job_id, job.status, status)
            updated = replace(job, status=status, **patch)
            self._jobs[job_id] = updated
            return replace(updated)

    def update_progress(
        self,
        job_id: str,
        progress: int,
        pages_analyzed: int,
        links_found: int,
        broken_link_count: int,
    ) -> Optional[AnalysisJob]:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            updated = replace(
                job,
                progress=max(job.progress, min(100, progress)),
                pages_analyzed=pages_analyzed,
                links_found=links_found,
                broken_link_count=broken_link_count,
            )
            self._jobs[job_id] = updated
            return replace(updated)

    def save_result(self, job_id: str, result: AnalysisResult) -> None:
        with self._lock:
            if job_id not in self._jobs:
                raise JobNotFoundError(job_id)
            if job_id in self._results:
                raise ResultAlreadySavedError(f"Analysis {job_id!r} already has a result")
            self._results[job_id] = result

    def get_result(self, job_id: str) -> Optional[AnalysisResult]:
        with self._lock:
            return self._results.get(job_id)

    def list_history(
        self, user_id: Optional[str] = None, page: int = 1, limit: int = 10
    ) -> HistoryPage:
        with self._lock:
            jobs = [
                replace(job)
                for job in self._jobs.values()
                if user_id is None or job.owner_id == user_id
            ]
        jobs.sort(key=lambda job: job.started_at, reverse=True)
        return paginate(jobs, page, limit)

    def delete(self, job_id: str) -> bool:
        with self._lock:
            self._results.pop(job_id, None)
            return self._jobs.pop(job_id, None) is not None
