"""Broken-link analysis endpoints.

Routes
------
POST   /analyze                  Start an analysis (202, returns its id)
GET    /analyze/history          Paginated job history (?page=&limit=&userId=)
GET    /analyze/{id}             Status and live counters of one job
DELETE /analyze/{id}             Cancel a pending or running job
GET    /analyze/{id}/results     Full result of a completed job
GET    /analyze/{id}/export      Download the result (?format=csv|html|json)

``/history`` is declared before ``/{id}`` so it is not captured as an id.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query, Request, Response
from pydantic import BaseModel, ConfigDict, Field

from linkaudit.analysis.export import EXPORT_FORMATS, export_result
from linkaudit.analysis.models import AnalysisJob, JobStatus
from linkaudit.analysis.orchestrator import AnalysisOrchestrator
from linkaudit.analysis.validators import (
    InvalidTargetError,
    validate_target_url,
    validate_timeout_ms,
)
from linkaudit.store import JobNotFoundError, JobStore

router = APIRouter()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class AnalyzeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: Optional[str] = None
    include_external: bool = Field(False, alias="includeExternal")
    # Page fetch timeout in milliseconds.
    timeout: Optional[int] = None
    user_id: Optional[str] = Field(None, alias="userId")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _store(request: Request) -> JobStore:
    return request.app.state.store


def _orchestrator(request: Request) -> AnalysisOrchestrator:
    return request.app.state.orchestrator


def _get_job_or_404(store: JobStore, analysis_id: str) -> AnalysisJob:
    job = store.get(analysis_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Analysis not found: {analysis_id!r}")
    return job


def _status_payload(job: AnalysisJob) -> dict[str, Any]:
    if job.status is JobStatus.FAILED:
        return {"analysisId": job.id, "status": "error", "error": job.error}
    return {
        "analysisId": job.id,
        "status": job.status.value,
        "progress": 100 if job.status is JobStatus.COMPLETED else job.progress,
        "pagesAnalyzed": job.pages_analyzed,
        "linksFound": job.links_found,
        "brokenLinks": job.broken_link_count,
    }


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("", status_code=202)
async def start(body: AnalyzeRequest, request: Request) -> dict[str, Any]:
    """Validate the request and start the analysis in the background."""
    errors = validate_target_url(body.url) + validate_timeout_ms(body.timeout)
    if errors:
        raise HTTPException(status_code=400, detail=errors)

    timeout = body.timeout / 1000 if body.timeout is not None else None
    try:
        job = _orchestrator(request).submit(
            body.url,  # type: ignore[arg-type]
            include_external=body.include_external,
            timeout=timeout,
            owner_id=body.user_id,
        )
    except InvalidTargetError as exc:
        raise HTTPException(status_code=400, detail=exc.errors) from exc
    return {"analysisId": job.id, "status": "running"}


@router.get("/history")
def history(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_id: Optional[str] = Query(None, alias="userId"),
) -> dict[str, Any]:
    """Return jobs newest first, optionally only those of one owner."""
    result = _store(request).list_history(user_id=user_id, page=page, limit=limit)
    return {
        "analyses": [job.to_dict() for job in result.items],
        "total": result.total,
        "page": result.page,
        "totalPages": result.total_pages,
    }


@router.get("/{analysis_id}")
def status(analysis_id: str, request: Request) -> dict[str, Any]:
    """Report the state and counters of one job."""
    return _status_payload(_get_job_or_404(_store(request), analysis_id))


@router.delete("/{analysis_id}")
async def cancel(analysis_id: str, request: Request) -> dict[str, Any]:
    """Cancel a job; ``cancelled`` is false when it had already finished."""
    store = _store(request)
    try:
        cancelled = await _orchestrator(request).cancel(analysis_id)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    job = _get_job_or_404(store, analysis_id)
    return {"analysisId": analysis_id, "cancelled": cancelled, "status": job.status.value}


@router.get("/{analysis_id}/results")
def results(analysis_id: str, request: Request) -> dict[str, Any]:
    """Return the full result; 404 until the job has completed."""
    store = _store(request)
    _get_job_or_404(store, analysis_id)
    result = store.get_result(analysis_id)
    if result is None:
        raise HTTPException(
            status_code=404, detail=f"No results available for analysis {analysis_id!r}"
        )
    return result.to_dict()


@router.get("/{analysis_id}/export")
def export(
    analysis_id: str,
    request: Request,
    format: str = Query("csv"),
) -> Response:
    """Download the result as CSV, HTML or JSON."""
    fmt = format.lower()
    if fmt not in EXPORT_FORMATS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported export format {format!r}; use one of {sorted(EXPORT_FORMATS)}",
        )

    store = _store(request)
    _get_job_or_404(store, analysis_id)
    result = store.get_result(analysis_id)
    if result is None:
        raise HTTPException(
            status_code=404, detail=f"No results available for analysis {analysis_id!r}"
        )

    return Response(
        content=export_result(result, fmt, analysis_id=analysis_id),
        media_type=EXPORT_FORMATS[fmt],
        headers={
            "Content-Disposition": f'attachment; filename="broken-links-{analysis_id}.{fmt}"'
        },
    )
