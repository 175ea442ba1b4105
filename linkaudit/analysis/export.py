"""Render a stored :class:`AnalysisResult` for download.

Supported formats: ``csv``, ``html`` (a printable report) and ``json``.
"""

from __future__ import annotations

import csv
import io
import json
from html import escape

from linkaudit.analysis.models import AnalysisResult

EXPORT_FORMATS: dict[str, str] = {
    "csv": "text/csv",
    "html": "text/html",
    "json": "application/json",
}

_CSV_HEADER = ["Source URL", "Target URL", "Status Code", "Error", "Link Type", "Link Text"]


class UnsupportedFormatError(ValueError):
    pass


def export_csv(result: AnalysisResult) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(_CSV_HEADER)
    for link in result.broken_links:
        writer.writerow(
            [
                link.source_url,
                link.absolute_url,
                link.status_code,
                link.error_type,
                link.classification.value,
                link.anchor_text,
            ]
        )
    return buffer.getvalue()


def export_html(result: AnalysisResult, analysis_id: str = "") -> str:
    summary = result.summary
    rows = "\n".join(
        "<tr>"
        f"<td>{escape(link.source_url)}</td>"
        f"<td>{escape(link.absolute_url)}</td>"
        f"<td>{link.status_code}</td>"
        f"<td>{escape(link.error_type)}</td>"
        f"<td class=\"{link.classification.value}\">{link.classification.value}</td>"
        "</tr>"
        for link in result.broken_links
    )
    advice = "\n".join(f"<li>{escape(item)}</li>" for item in result.recommendations)
    title = "Broken link report"
    if analysis_id:
        title = f"{title} {escape(analysis_id)}"

    return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
body {{ font-family: Arial, sans-serif; margin: 20px; }}
table {{ width: 100%; border-collapse: collapse; margin-top: 20px; }}
th, td {{ padding: 8px; text-align: left; border-bottom: 1px solid #ddd; }}
.internal {{ color: #3498db; }}
.external {{ color: #27ae60; }}
</style>
</head>
<body>
<h1>{title}</h1>
<ul>
<li>Pages analysed: {summary.total_pages}</li>
<li>Links checked: {summary.total_links}</li>
<li>Broken links: {summary.broken_links}</li>
<li>Health score: {summary.health_score}%</li>
</ul>
<table>
<thead><tr><th>Source URL</th><th>Target URL</th><th>Code</th><th>Error</th><th>Type</th></tr></thead>
<tbody>
{rows}
</tbody>
</table>
<h2>Recommendations</h2>
<ul>
{advice}
</ul>
</body>
</html>
"""


def export_result(result: AnalysisResult, fmt: str, analysis_id: str = "") -> str:
    """Serialise *result* in *fmt*.

    Raises:
        UnsupportedFormatError: If *fmt* is not one of :data:`EXPORT_FORMATS`.
    """
    fmt = fmt.lower()
    if fmt == "csv":
        return export_csv(result)
    if fmt == "html":
        return export_html(result, analysis_id)
    if fmt == "json":
        return json.dumps(result.to_dict(), indent=2)
    raise UnsupportedFormatError(
        f"Unsupported export format {fmt!r}. Use one of: {', '.join(EXPORT_FORMATS)}"
    )
