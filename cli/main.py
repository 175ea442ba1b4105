"""linkaudit CLI — entry-point for all engine operations.

Usage:
    python cli/main.py --help

Commands:
    analyze   → analyse one page for broken links and print the report
    history   → list past analyses (kept across runs only with STORE_BACKEND=sqlite)
    serve     → run the HTTP API with uvicorn
    db        → database operations
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from linkaudit.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import asyncio
import json
from typing import Optional

import typer

from linkaudit.analysis.export import EXPORT_FORMATS, export_result
from linkaudit.analysis.models import AnalysisJob, AnalysisResult, JobStatus
from linkaudit.analysis.orchestrator import AnalysisOrchestrator
from linkaudit.analysis.validators import InvalidTargetError
from linkaudit.config import settings
from linkaudit.db import get_connection, init_db
from linkaudit.store import SqliteJobStore, create_store

app = typer.Typer(
    name="linkaudit",
    help="Broken-link analysis engine CLI.",
    no_args_is_help=True,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _print_report(job: AnalysisJob, result: AnalysisResult) -> None:
    summary = result.summary
    typer.echo(f"[analyze] Page        : {job.target_url}")
    typer.echo(f"[analyze] Links       : {summary.total_links}")
    typer.echo(f"[analyze] Broken      : {summary.broken_links}")
    typer.echo(f"[analyze] Health score: {summary.health_score}")
    typer.echo(f"[analyze] Time        : {summary.analysis_time_ms} ms")

    if result.broken_links:
        typer.echo("")
        for link in result.broken_links:
            typer.echo(
                f"  ✗ {link.status_code:>3}  {link.absolute_url}  "
                f"[{link.classification.value}] {link.error_type}"
            )

    typer.echo("")
    for recommendation in result.recommendations:
        typer.echo(f"  • {recommendation}")


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------
@app.command("analyze")
def analyze(
    url: str = typer.Argument(..., help="Absolute http(s) URL of the page to analyse."),
    include_external: bool = typer.Option(
        False, "--include-external", help="Also verify links to other hosts."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Seconds allowed for the page fetch."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the report to this file."
    ),
    fmt: str = typer.Option("csv", "--format", help="Report format: csv | html | json."),
) -> None:
    """Analyse a single page and report its broken links."""
    if fmt not in EXPORT_FORMATS:
        typer.echo(f"[analyze] Unknown format {fmt!r}. Use: {' | '.join(EXPORT_FORMATS)}")
        raise typer.Exit(1)

    store = create_store(settings)
    orchestrator = AnalysisOrchestrator(store)
    typer.echo(f"[analyze] Analysing {url!r} …", err=as_json)

    try:
        job, result = asyncio.run(
            orchestrator.analyze(url, include_external=include_external, timeout=timeout)
        )
    except InvalidTargetError as exc:
        for error in exc.errors:
            typer.echo(f"[analyze] {error}")
        raise typer.Exit(1) from exc
    finally:
        if isinstance(store, SqliteJobStore):
            store.close()

    if job.status is not JobStatus.COMPLETED or result is None:
        typer.echo(f"[analyze] Analysis {job.status.value}: {job.error or 'no result'}")
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps({"analysisId": job.id, **result.to_dict()}, indent=2))
    else:
        _print_report(job, result)

    if output is not None:
        output.write_text(export_result(result, fmt, analysis_id=job.id), encoding="utf-8")
        typer.echo(f"[analyze] Report written to {output}", err=as_json)


@app.command("history")
def history(
    page: int = typer.Option(1, min=1, help="Page number (1-based)."),
    limit: int = typer.Option(10, min=1, max=100, help="Analyses per page."),
    user: Optional[str] = typer.Option(None, "--user", help="Only this owner's analyses."),
) -> None:
    """List past analyses, newest first.

    The in-memory store starts empty on every invocation, so history is only
    kept across runs with ``STORE_BACKEND=sqlite``.
    """
    store = create_store(settings)
    try:
        result = store.list_history(user_id=user, page=page, limit=limit)
    finally:
        if isinstance(store, SqliteJobStore):
            store.close()

    if not result.items:
        typer.echo("[history] No analyses found.")
        if settings.store_backend.lower() != "sqlite":
            typer.echo("[history] The memory store keeps no history between runs; set STORE_BACKEND=sqlite.")
        return
    for job in result.items:
        typer.echo(
            f"  {job.id}  [{job.status.value}]  {job.target_url}  "
            f"links={job.links_found} broken={job.broken_link_count}"
        )
    typer.echo(f"[history] Page {result.page}/{result.total_pages} ({result.total} total)")


# ---------------------------------------------------------------------------
# HTTP API
# ---------------------------------------------------------------------------
@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Interface to bind."),
    port: int = typer.Option(8000, help="Port to listen on."),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes."),
) -> None:
    """Run the HTTP API."""
    import uvicorn

    typer.echo(f"[serve] http://{host}:{port}  (store={settings.store_backend})")
    uvicorn.run("linkaudit.api.app:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    settings.ensure_workspace()
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
