"""Tests for the /analyze and /health API endpoints.

Most tests seed the job store directly so they do not depend on background
timing.  The end-to-end tests start a real analysis against pages served by
``respx`` and poll until it finishes.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import respx
from fastapi.testclient import TestClient

from linkaudit.analysis.models import (
    AnalysisJob,
    AnalysisResult,
    AnalysisSummary,
    CheckedLink,
    JobStatus,
    LinkClassification,
)
from linkaudit.analysis.orchestrator import AnalysisOrchestrator
from linkaudit.api.app import create_app
from linkaudit.store import InMemoryJobStore

_PAGE = "https://example.com/"
_T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def store() -> InMemoryJobStore:
    return InMemoryJobStore()


@pytest.fixture()
def client(store, monkeypatch, tmp_path):
    """TestClient whose app uses a fresh in-memory store.

    The lifespan builds its own store and orchestrator when the context
    manager enters; both are replaced right after so each test is isolated.
    """
    monkeypatch.setattr("linkaudit.config.settings.workspace_dir", tmp_path)
    app = create_app()

    with TestClient(app, raise_server_exceptions=True) as c:
        c.app.state.store = store
        c.app.state.orchestrator = AnalysisOrchestrator(store, link_timeout=1.0, max_concurrency=4)
        yield c


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _seed(store: InMemoryJobStore, job_id: str, status: JobStatus, minutes: int = 0, **fields) -> None:
    store.create(
        AnalysisJob(
            id=job_id,
            target_url=_PAGE,
            started_at=_T0 + timedelta(minutes=minutes),
            **fields,
        )
    )
    if status is JobStatus.PENDING:
        return
    if status is not JobStatus.FAILED:
        store.update_status(job_id, JobStatus.RUNNING)
    if status is not JobStatus.RUNNING:
        store.update_status(job_id, status)


def _result() -> AnalysisResult:
    return AnalysisResult(
        summary=AnalysisSummary(
            total_pages=1, total_links=2, broken_links=1, health_score=50, analysis_time_ms=80
        ),
        broken_links=(
            CheckedLink(
                absolute_url="https://example.com/missing",
                classification=LinkClassification.INTERNAL,
                status_code=404,
                error_type="Not Found",
                latency_ms=10,
                source_url=_PAGE,
                anchor_text="Missing",
            ),
        ),
        recommendations=("Fix it.",),
    )


def _seed_completed(store: InMemoryJobStore, job_id: str = "done") -> None:
    _seed(store, job_id, JobStatus.RUNNING)
    store.update_progress(job_id, 95, 1, 2, 1)
    store.save_result(job_id, _result())
    store.update_status(job_id, JobStatus.COMPLETED)


def _poll(client: TestClient, analysis_id: str) -> dict:
    for _ in range(250):
        body = client.get(f"/analyze/{analysis_id}").json()
        if body["status"] in ("completed", "error", "cancelled"):
            return body
        time.sleep(0.02)
    raise AssertionError("analysis did not finish")


# ---------------------------------------------------------------------------
# POST /analyze
# ---------------------------------------------------------------------------

class TestStartAnalysis:
    def test_accepted(self, client, store) -> None:
        with respx.mock(assert_all_called=False) as respx_mock:
            respx_mock.get(_PAGE).mock(return_value=httpx.Response(200, html="<p>no links</p>"))
            resp = client.post("/analyze", json={"url": _PAGE, "userId": "alice"})
            assert resp.status_code == 202
            body = resp.json()
            assert body["status"] == "running"
            _poll(client, body["analysisId"])

        job = store.get(body["analysisId"])
        assert job is not None
        assert job.owner_id == "alice"

    def test_timeout_converted_to_seconds(self, client, store) -> None:
        with respx.mock(assert_all_called=False) as respx_mock:
            respx_mock.get(_PAGE).mock(return_value=httpx.Response(200, html="<p>x</p>"))
            resp = client.post("/analyze", json={"url": _PAGE, "timeout": 5000, "includeExternal": True})
            analysis_id = resp.json()["analysisId"]
            _poll(client, analysis_id)

        job = store.get(analysis_id)
        assert job.timeout == 5.0  # type: ignore[union-attr]
        assert job.include_external is True  # type: ignore[union-attr]

    @pytest.mark.parametrize(
        "payload, message",
        [
            ({}, "URL is required"),
            ({"url": ""}, "URL is required"),
            ({"url": "ftp://example.com"}, "Only http and https URLs can be analysed"),
            ({"url": "not a url"}, "URL is not valid"),
            ({"url": _PAGE, "timeout": 10}, "Timeout must be between 1000ms and 30000ms"),
        ],
    )
    def test_rejected(self, client, store, payload, message) -> None:
        resp = client.post("/analyze", json=payload)
        assert resp.status_code == 400
        assert message in resp.json()["detail"]
        assert store.list_history().total == 0

    def test_malformed_body(self, client) -> None:
        resp = client.post("/analyze", json={"url": 42})
        assert resp.status_code == 400
        assert isinstance(resp.json()["detail"], list)


# ---------------------------------------------------------------------------
# GET /analyze/{id}
# ---------------------------------------------------------------------------

class TestStatus:
    def test_running(self, client, store) -> None:
        _seed(store, "r1", JobStatus.RUNNING)
        store.update_progress("r1", 40, 1, 10, 2)
        assert client.get("/analyze/r1").json() == {
            "analysisId": "r1",
            "status": "running",
            "progress": 40,
            "pagesAnalyzed": 1,
            "linksFound": 10,
            "brokenLinks": 2,
        }

    def test_pending(self, client, store) -> None:
        _seed(store, "p1", JobStatus.PENDING)
        body = client.get("/analyze/p1").json()
        assert body["status"] == "pending"
        assert body["progress"] == 0

    def test_completed_reports_full_progress(self, client, store) -> None:
        _seed_completed(store)
        body = client.get("/analyze/done").json()
        assert body["status"] == "completed"
        assert body["progress"] == 100
        assert body["brokenLinks"] == 1

    def test_failed(self, client, store) -> None:
        _seed(store, "f1", JobStatus.PENDING)
        store.update_status("f1", JobStatus.FAILED, error="HTTP 500 fetching https://example.com/")
        assert client.get("/analyze/f1").json() == {
            "analysisId": "f1",
            "status": "error",
            "error": "HTTP 500 fetching https://example.com/",
        }

    def test_cancelled(self, client, store) -> None:
        _seed(store, "c1", JobStatus.CANCELLED)
        body = client.get("/analyze/c1").json()
        assert body["status"] == "cancelled"
        assert "progress" in body

    def test_unknown(self, client) -> None:
        assert client.get("/analyze/missing").status_code == 404


# ---------------------------------------------------------------------------
# DELETE /analyze/{id}
# ---------------------------------------------------------------------------

class TestCancel:
    def test_cancel_pending(self, client, store) -> None:
        _seed(store, "p1", JobStatus.PENDING)
        assert client.delete("/analyze/p1").json() == {
            "analysisId": "p1",
            "cancelled": True,
            "status": "cancelled",
        }
        assert store.get_result("p1") is None

    def test_cancel_completed(self, client, store) -> None:
        _seed_completed(store)
        body = client.delete("/analyze/done").json()
        assert body["cancelled"] is False
        assert body["status"] == "completed"

    def test_cancel_unknown(self, client) -> None:
        assert client.delete("/analyze/missing").status_code == 404


# ---------------------------------------------------------------------------
# GET /analyze/{id}/results and /export
# ---------------------------------------------------------------------------

class TestResults:
    def test_completed(self, client, store) -> None:
        _seed_completed(store)
        resp = client.get("/analyze/done/results")
        assert resp.status_code == 200
        body = resp.json()
        assert body["summary"]["healthScore"] == 50
        assert body["brokenLinks"][0]["statusCode"] == 404
        assert body["brokenLinks"][0]["linkType"] == "internal"

    def test_repeated_reads_identical(self, client, store) -> None:
        _seed_completed(store)
        first = client.get("/analyze/done/results").content
        second = client.get("/analyze/done/results").content
        assert first == second

    def test_not_finished(self, client, store) -> None:
        _seed(store, "r1", JobStatus.RUNNING)
        assert client.get("/analyze/r1/results").status_code == 404

    def test_unknown(self, client) -> None:
        assert client.get("/analyze/missing/results").status_code == 404


class TestExport:
    @pytest.mark.parametrize(
        "fmt, media_type",
        [("csv", "text/csv"), ("html", "text/html"), ("json", "application/json")],
    )
    def test_download(self, client, store, fmt, media_type) -> None:
        _seed_completed(store)
        resp = client.get(f"/analyze/done/export?format={fmt}")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith(media_type)
        assert (
            resp.headers["content-disposition"]
            == f'attachment; filename="broken-links-done.{fmt}"'
        )
        assert "https://example.com/missing" in resp.text

    def test_unknown_format(self, client, store) -> None:
        _seed_completed(store)
        assert client.get("/analyze/done/export?format=xml").status_code == 400

    def test_no_result(self, client, store) -> None:
        _seed(store, "r1", JobStatus.RUNNING)
        assert client.get("/analyze/r1/export?format=csv").status_code == 404


# ---------------------------------------------------------------------------
# GET /analyze/history
# ---------------------------------------------------------------------------

class TestHistory:
    def test_newest_first_paginated(self, client, store) -> None:
        for i in range(3):
            _seed(store, f"h{i}", JobStatus.PENDING, minutes=i)
        body = client.get("/analyze/history?page=1&limit=2").json()
        assert [a["analysisId"] for a in body["analyses"]] == ["h2", "h1"]
        assert body["total"] == 3
        assert body["page"] == 1
        assert body["totalPages"] == 2

    def test_filtered_by_user(self, client, store) -> None:
        _seed(store, "a", JobStatus.PENDING, owner_id="alice")
        _seed(store, "b", JobStatus.PENDING, minutes=1, owner_id="bob")
        body = client.get("/analyze/history?userId=bob").json()
        assert [a["analysisId"] for a in body["analyses"]] == ["b"]

    def test_bad_page(self, client) -> None:
        assert client.get("/analyze/history?page=0").status_code == 400


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------

class TestEndToEnd:
    def test_analysis_completes(self, client) -> None:
        html = '<a href="/ok">ok</a><a href="/missing">missing</a><img src="/logo.png">'
        with respx.mock(assert_all_called=False) as respx_mock:
            respx_mock.get(_PAGE).mock(return_value=httpx.Response(200, html=html))
            respx_mock.head("https://example.com/ok").mock(return_value=httpx.Response(200))
            respx_mock.head("https://example.com/missing").mock(return_value=httpx.Response(404))
            respx_mock.head("https://example.com/logo.png").mock(return_value=httpx.Response(200))

            analysis_id = client.post("/analyze", json={"url": _PAGE}).json()["analysisId"]
            status = _poll(client, analysis_id)

        assert status["status"] == "completed"
        assert status["progress"] == 100
        assert status["linksFound"] == 3
        results = client.get(f"/analyze/{analysis_id}/results").json()
        assert results["summary"]["totalLinks"] == 3
        assert results["summary"]["brokenLinks"] == 1
        assert results["summary"]["healthScore"] == 67

    def test_page_failure_reported_as_error(self, client) -> None:
        with respx.mock(assert_all_called=False) as respx_mock:
            respx_mock.get(_PAGE).mock(return_value=httpx.Response(503))
            analysis_id = client.post("/analyze", json={"url": _PAGE}).json()["analysisId"]
            status = _poll(client, analysis_id)

        assert status == {
            "analysisId": analysis_id,
            "status": "error",
            "error": f"HTTP 503 fetching {_PAGE}",
        }
        assert client.get(f"/analyze/{analysis_id}/results").status_code == 404


class TestHealth:
    def test_health(self, client) -> None:
        body = client.get("/health").json()
        assert body["service"] == "linkaudit"
        assert body["status"] == "ok"
        assert "timestamp" in body
