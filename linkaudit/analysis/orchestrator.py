"""Job orchestration for broken-link analyses.

``AnalysisOrchestrator`` owns the lifecycle of every job: it validates the
request, records a ``pending`` job in the store, and runs the analysis as a
detached :class:`asyncio.Task`.  The HTTP API and the CLI both drive jobs
through this class; neither talks to the fetcher or verifier directly.

A run goes through these steps::

    running -> fetch page -> extract -> resolve -> verify (bounded fan-out)
            -> save result -> progress 100 -> completed

Cancellation is real: ``cancel`` marks the job and cancels its task, which
aborts every in-flight httpx request.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import Any, Callable, Optional

import httpx

from linkaudit.analysis.models import (
    AnalysisJob,
    AnalysisResult,
    AnalysisSummary,
    CheckedLink,
    JobStatus,
    compute_health_score,
    utcnow,
)
from linkaudit.analysis.recommendations import build_recommendations
from linkaudit.analysis.resolver import ResolvedLink, resolve_candidates
from linkaudit.analysis.validators import InvalidTargetError, ensure_valid_target
from linkaudit.analysis.verifier import verify_link
from linkaudit.config import settings
from linkaudit.log import get_logger
from linkaudit.scraper import extract_candidates, fetch_page
from linkaudit.scraper.fetcher import default_headers
from linkaudit.store.base import (
    InvalidTransitionError,
    JobAlreadyExistsError,
    JobNotFoundError,
    JobStore,
)

logger = get_logger(__name__)

# Share of the progress bar credited once the page itself is fetched; the
# remainder up to 95 is spread over link checks and 100 is set on completion.
_FETCHED_PROGRESS = 10
_VERIFIED_PROGRESS = 95


def _verification_progress(done: int, total: int) -> int:
    span = _VERIFIED_PROGRESS - _FETCHED_PROGRESS
    return _FETCHED_PROGRESS + span * done // total


class AnalysisOrchestrator:
    """Schedule, run, observe and cancel analysis jobs.

    Args:
        store: Where jobs and results are persisted.
        link_timeout: Seconds allowed per link check.  Defaults to
            ``settings.link_timeout``.
        max_concurrency: Upper bound on simultaneous link checks (and on the
            HTTP connection pool).  Defaults to ``settings.max_concurrent_checks``.
        retries: Extra attempts for transient link-check failures.  Defaults
            to ``settings.link_check_retries``.
        client_factory: Zero-argument callable returning a fresh
            :class:`httpx.AsyncClient` for one run.
    """

    def __init__(
        self,
        store: JobStore,
        *,
        link_timeout: Optional[float] = None,
        max_concurrency: Optional[int] = None,
        retries: Optional[int] = None,
        client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
    ) -> None:
        self.store = store
        self.link_timeout = settings.link_timeout if link_timeout is None else link_timeout
        self.max_concurrency = max(
            1, settings.max_concurrent_checks if max_concurrency is None else max_concurrency
        )
        self.retries = settings.link_check_retries if retries is None else retries
        self._client_factory = client_factory or self._default_client
        self._tasks: dict[str, asyncio.Task[Optional[AnalysisResult]]] = {}

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _default_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers=default_headers(),
            limits=httpx.Limits(max_connections=self.max_concurrency),
        )

    def _transition(self, job_id: str, status: JobStatus, **patch: Any) -> bool:
        """Move *job_id* to *status*; ``False`` if the job is gone or already final."""
        try:
            return self.store.update_status(job_id, status, **patch) is not None
        except InvalidTransitionError as exc:
            logger.info("[JOB] %s", exc)
            return False

    def _is_running(self, job_id: str) -> bool:
        job = self.store.get(job_id)
        return job is not None and job.status is JobStatus.RUNNING

    def _fail(self, job_id: str, message: str) -> None:
        logger.warning("[JOB] %s failed: %s", job_id, message)
        self._transition(job_id, JobStatus.FAILED, error=message, completed_at=utcnow())

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def submit(
        self,
        target_url: str,
        include_external: bool = False,
        timeout: Optional[float] = None,
        owner_id: Optional[str] = None,
    ) -> AnalysisJob:
        """Create a ``pending`` job and schedule its run on the current loop.

        Args:
            target_url: Absolute http(s) address of the page to analyse.
            include_external: Also verify links to other hosts.
            timeout: Seconds allowed for the page fetch.  Defaults to
                ``settings.page_timeout``.
            owner_id: Optional owner used to filter history.

        Returns:
            The job as stored, before the run has started.

        Raises:
            InvalidTargetError: If the URL or timeout is rejected.  No job is
                created in that case.
        """
        url = ensure_valid_target(target_url)
        if timeout is not None and timeout <= 0:
            raise InvalidTargetError(["Timeout must be positive"])

        job = AnalysisJob(
            id=str(uuid.uuid4()),
            target_url=url,
            owner_id=owner_id,
            include_external=include_external,
            timeout=timeout,
        )
        if job.id in self._tasks:
            raise JobAlreadyExistsError(f"Analysis {job.id!r} already has a task")
        job = self.store.create(job)

        self._tasks[job.id] = asyncio.create_task(self.run(job), name=f"analysis-{job.id}")
        logger.info("[JOB] %s submitted for %s", job.id, url)
        return job

    async def run(self, job: AnalysisJob) -> Optional[AnalysisResult]:
        """Execute *job* end to end.

        Never raises except :class:`asyncio.CancelledError`; every other
        failure is recorded on the job as ``failed``.
        """
        job_id = job.id
        start = time.perf_counter()
        try:
            if not self._transition(job_id, JobStatus.RUNNING):
                return None
            async with self._client_factory() as client:
                return await self._analyse(client, job, start)
        except asyncio.CancelledError:
            logger.info("[JOB] %s cancelled", job_id)
            self._transition(job_id, JobStatus.CANCELLED, completed_at=utcnow())
            raise
        except Exception as exc:
            logger.exception("[JOB] %s crashed", job_id)
            self._fail(job_id, str(exc) or exc.__class__.__name__)
            return None
        finally:
            self._tasks.pop(job_id, None)

    async def _analyse(
        self, client: httpx.AsyncClient, job: AnalysisJob, start: float
    ) -> Optional[AnalysisResult]:
        job_id = job.id
        url = job.target_url
        page_timeout = settings.page_timeout if job.timeout is None else job.timeout

        # -- page ----------------------------------------------------------
        try:
            page = await fetch_page(client, url, timeout=page_timeout)
        except httpx.TimeoutException:
            self._fail(job_id, f"Timed out fetching {url} after {page_timeout:g}s")
            return None
        except httpx.HTTPStatusError as exc:
            self._fail(job_id, f"HTTP {exc.response.status_code} fetching {url}")
            return None
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            self._fail(job_id, f"Error fetching {url}: {exc}")
            return None

        if not self._is_running(job_id):
            return None

        # -- links ---------------------------------------------------------
        resolution = resolve_candidates(
            extract_candidates(page.html),
            page.url,
            include_external=job.include_external,
        )
        links_found = len(resolution.links) + len(resolution.invalid)
        broken_count = len(resolution.invalid)
        logger.info(
            "[JOB] %s: %d link(s) to verify, %d invalid, %d external skipped",
            job_id,
            len(resolution.links),
            len(resolution.invalid),
            resolution.skipped_external,
        )
        self.store.update_progress(job_id, _FETCHED_PROGRESS, 1, links_found, broken_count)

        semaphore = asyncio.Semaphore(self.max_concurrency)
        total = len(resolution.links)
        done = 0

        async def check(link: ResolvedLink) -> CheckedLink:
            nonlocal done, broken_count
            async with semaphore:
                checked = await verify_link(
                    client,
                    link,
                    page.url,
                    timeout=self.link_timeout,
                    retries=self.retries,
                )
            done += 1
            if checked.is_broken:
                broken_count += 1
            self.store.update_progress(
                job_id, _verification_progress(done, total), 1, links_found, broken_count
            )
            return checked

        # gather keeps page order whatever the completion order
        checked_links = await asyncio.gather(*(check(link) for link in resolution.links))

        if not self._is_running(job_id):
            return None

        # -- result --------------------------------------------------------
        broken = tuple(
            [link for link in checked_links if link.is_broken] + resolution.invalid
        )
        summary = AnalysisSummary(
            total_pages=1,
            total_links=links_found,
            broken_links=len(broken),
            health_score=compute_health_score(links_found, len(broken)),
            analysis_time_ms=int((time.perf_counter() - start) * 1000),
        )
        result = AnalysisResult(
            summary=summary,
            broken_links=broken,
            recommendations=tuple(build_recommendations(broken)),
        )

        self.store.save_result(job_id, result)
        self.store.update_progress(job_id, 100, 1, links_found, len(broken))
        self._transition(job_id, JobStatus.COMPLETED, completed_at=utcnow())
        logger.info(
            "[JOB] %s completed: %d/%d broken, health %d",
            job_id,
            summary.broken_links,
            summary.total_links,
            summary.health_score,
        )
        return result

    async def cancel(self, job_id: str) -> bool:
        """Cancel a ``pending`` or ``running`` job.

        Returns:
            ``True`` if the job was cancelled by this call, ``False`` if it had
            already reached a terminal state.

        Raises:
            JobNotFoundError: If *job_id* is unknown.
        """
        job = self.store.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.status.is_terminal:
            return False
        if not self._transition(job_id, JobStatus.CANCELLED, completed_at=utcnow()):
            return False

        task = self._tasks.get(job_id)
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})
        self._tasks.pop(job_id, None)
        logger.info("[JOB] %s cancellation requested", job_id)
        return True

    async def wait(self, job_id: str) -> Optional[AnalysisJob]:
        """Wait for the run of *job_id* to finish and return the final job."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.wait({task})
        return self.store.get(job_id)

    async def shutdown(self) -> None:
        """Cancel every outstanding run and wait for them to unwind."""
        tasks = [task for task in self._tasks.values() if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.wait(tasks)
        logger.info("[JOB] shutdown: %d run(s) cancelled", len(tasks))

    async def analyze(
        self,
        target_url: str,
        include_external: bool = False,
        timeout: Optional[float] = None,
        owner_id: Optional[str] = None,
    ) -> tuple[AnalysisJob, Optional[AnalysisResult]]:
        """Submit a job and wait for it; used by the CLI."""
        job = self.submit(
            target_url,
            include_external=include_external,
            timeout=timeout,
            owner_id=owner_id,
        )
        final = await self.wait(job.id)
        return final or job, self.store.get_result(job.id)
