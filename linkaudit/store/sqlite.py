"""Durable job store backed by SQLite.

One row per job in ``analysis_jobs``; the summary of a completed job lives in
``analysis_results`` and each broken link in ``broken_links``.  The schema is
created by :func:`linkaudit.db.init_db`.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from datetime import datetime
from typing import Any, Optional

from linkaudit.analysis.models import (
    AnalysisJob,
    AnalysisResult,
    AnalysisSummary,
    CheckedLink,
    HistoryPage,
    JobStatus,
    LinkClassification,
    can_transition,
)
from linkaudit.scraper.models import ReferenceKind
from linkaudit.store.base import (
    InvalidTransitionError,
    JobAlreadyExistsError,
    JobNotFoundError,
    JobStore,
    ResultAlreadySavedError,
    check_patch,
    paginate,
)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _to_text(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_text(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_job(row: sqlite3.Row) -> AnalysisJob:
    return AnalysisJob(
        id=row["id"],
        target_url=row["target_url"],
        status=JobStatus(row["status"]),
        progress=row["progress"],
        pages_analyzed=row["pages_analyzed"],
        links_found=row["links_found"],
        broken_link_count=row["broken_link_count"],
        started_at=_from_text(row["started_at"]),  # type: ignore[arg-type]
        completed_at=_from_text(row["completed_at"]),
        error=row["error"],
        owner_id=row["owner_id"],
        include_external=bool(row["include_external"]),
        timeout=row["timeout"],
    )


def _row_to_link(row: sqlite3.Row) -> CheckedLink:
    return CheckedLink(
        absolute_url=row["target_url"],
        classification=LinkClassification(row["link_type"]),
        status_code=row["status_code"],
        error_type=row["error_type"],
        latency_ms=row["response_time_ms"],
        source_url=row["source_url"],
        anchor_text=row["link_text"],
        reference_kind=ReferenceKind(row["reference_kind"]),
    )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class SqliteJobStore(JobStore):
    """Job store over an open, initialised SQLite connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.RLock()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def create(self, job: AnalysisJob) -> AnalysisJob:
        with self._lock:
            try:
                with self._conn:
                    self._conn.execute(
                        """
                        INSERT INTO analysis_jobs (
                            id, target_url, status, progress, pages_analyzed,
                            links_found, broken_link_count, started_at,
                            completed_at, error, owner_id, include_external, timeout
                        )
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            job.id,
                            job.target_url,
                            job.status.value,
                            job.progress,
                            job.pages_analyzed,
                            job.links_found,
                            job.broken_link_count,
                            _to_text(job.started_at),
                            _to_text(job.completed_at),
                            job.error,
                            job.owner_id,
                            int(job.include_external),
                            job.timeout,
                        ),
                    )
            except sqlite3.IntegrityError as exc:
                raise JobAlreadyExistsError(f"Analysis {job.id!r} already exists") from exc
            return self.get(job.id)  # type: ignore[return-value]

    def get(self, job_id: str) -> Optional[AnalysisJob]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM analysis_jobs WHERE id = ?", (job_id,)
            ).fetchone()
        return _row_to_job(row) if row else None

    def update_status(
        self, job_id: str, status: JobStatus, **patch: Any
    ) -> Optional[AnalysisJob]:
        check_patch(patch)
        with self._lock:
            job = self.get(job_id)
            if job is None:
                return None
            if not can_transition(job.status, status):
                raise InvalidTransitionError(job_id, job.status, status)

            updates: dict[str, Any] = {"status": status.value}
            if "error" in patch:
                updates["error"] = patch["error"]
            if "completed_at" in patch:
                updates["completed_at"] = _to_text(patch["completed_at"])

            set_clause = ", ".join(f"{col} = ?" for col in updates)
            with self._conn:
                self._conn.execute(
                    f"UPDATE analysis_jobs SET {set_clause} WHERE id = ?",  # noqa: S608
                    [*updates.values(), job_id],
                )
            return self.get(job_id)

    def update_progress(
        self,
        job_id: str,
        progress: int,
        pages_analyzed: int,
        links_found: int,
        broken_link_count: int,
    ) -> Optional[AnalysisJob]:
        with self._lock:
            with self._conn:
                self._conn.execute(
                    """
                    UPDATE analysis_jobs
                    SET progress = MAX(progress, ?),
                        pages_analyzed = ?,
                        links_found = ?,
                        broken_link_count = ?
                    WHERE id = ?
                    """,
                    (
                        min(100, progress),
                        pages_analyzed,
                        links_found,
                        broken_link_count,
                        job_id,
                    ),
                )
            return self.get(job_id)

    def save_result(self, job_id: str, result: AnalysisResult) -> None:
        summary = result.summary
        with self._lock:
            if self.get(job_id) is None:
                raise JobNotFoundError(job_id)
            try:
                with self._conn:
                    self._conn.execute(
                        """
                        INSERT INTO analysis_results (
                            analysis_id, total_pages, total_links, broken_links,
                            health_score, analysis_time_ms, recommendations
                        )
                        VALUES (?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            job_id,
                            summary.total_pages,
                            summary.total_links,
                            summary.broken_links,
                            summary.health_score,
                            summary.analysis_time_ms,
                            json.dumps(list(result.recommendations)),
                        ),
                    )
                    self._conn.executemany(
                        """
                        INSERT INTO broken_links (
                            analysis_id, position, source_url, target_url, status_code,
                            error_type, link_type, link_text, reference_kind, response_time_ms
                        )
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        [
                            (
                                job_id,
                                position,
                                link.source_url,
                                link.absolute_url,
                                link.status_code,
                                link.error_type,
                                link.classification.value,
                                link.anchor_text,
                                link.reference_kind.value,
                                link.latency_ms,
                            )
                            for position, link in enumerate(result.broken_links)
                        ],
                    )
            except sqlite3.IntegrityError as exc:
                raise ResultAlreadySavedError(
                    f"Analysis {job_id!r} already has a result"
                ) from exc

    def get_result(self, job_id: str) -> Optional[AnalysisResult]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM analysis_results WHERE analysis_id = ?", (job_id,)
            ).fetchone()
            if row is None:
                return None
            link_rows = self._conn.execute(
                "SELECT * FROM broken_links WHERE analysis_id = ? ORDER BY position",
                (job_id,),
            ).fetchall()

        return AnalysisResult(
            summary=AnalysisSummary(
                total_pages=row["total_pages"],
                total_links=row["total_links"],
                broken_links=row["broken_links"],
                health_score=row["health_score"],
                analysis_time_ms=row["analysis_time_ms"],
            ),
            broken_links=tuple(_row_to_link(r) for r in link_rows),
            recommendations=tuple(json.loads(row["recommendations"] or "[]")),
        )

    def list_history(
        self, user_id: Optional[str] = None, page: int = 1, limit: int = 10
    ) -> HistoryPage:
        with self._lock:
            if user_id is None:
                rows = self._conn.execute(
                    "SELECT * FROM analysis_jobs ORDER BY started_at DESC"
                ).fetchall()
            else:
                rows = self._conn.execute(
                    "SELECT * FROM analysis_jobs WHERE owner_id = ? ORDER BY started_at DESC",
                    (user_id,),
                ).fetchall()
        return paginate([_row_to_job(r) for r in rows], page, limit)

    def delete(self, job_id: str) -> bool:
        with self._lock:
            with self._conn:
                cursor = self._conn.execute(
                    "DELETE FROM analysis_jobs WHERE id = ?", (job_id,)
                )
        return cursor.rowcount > 0
