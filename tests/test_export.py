"""Tests for result export (CSV, HTML, JSON)."""

from __future__ import annotations

import csv
import io
import json

import pytest

from linkaudit.analysis.export import (
    EXPORT_FORMATS,
    UnsupportedFormatError,
    export_csv,
    export_html,
    export_result,
)
from linkaudit.analysis.models import (
    AnalysisResult,
    AnalysisSummary,
    CheckedLink,
    LinkClassification,
)


@pytest.fixture()
def result() -> AnalysisResult:
    return AnalysisResult(
        summary=AnalysisSummary(
            total_pages=1, total_links=2, broken_links=1, health_score=50, analysis_time_ms=120
        ),
        broken_links=(
            CheckedLink(
                absolute_url="https://example.com/missing?a=1&b=2",
                classification=LinkClassification.INTERNAL,
                status_code=404,
                error_type="Not Found",
                latency_ms=30,
                source_url="https://example.com/",
                anchor_text='Say "hi", <b>',
            ),
        ),
        recommendations=("Fix or remove 1 link(s) pointing to missing pages (404/410).",),
    )


class TestExportCsv:
    def test_header_and_row(self, result: AnalysisResult) -> None:
        rows = list(csv.reader(io.StringIO(export_csv(result))))
        assert rows[0] == ["Source URL", "Target URL", "Status Code", "Error", "Link Type", "Link Text"]
        assert rows[1] == [
            "https://example.com/",
            "https://example.com/missing?a=1&b=2",
            "404",
            "Not Found",
            "internal",
            'Say "hi", <b>',
        ]
        assert len(rows) == 2

    def test_empty_result_has_header_only(self) -> None:
        empty = AnalysisResult(summary=AnalysisSummary(1, 0, 0, 100, 5))
        assert export_csv(empty).splitlines() == [
            "Source URL,Target URL,Status Code,Error,Link Type,Link Text"
        ]


class TestExportHtml:
    def test_values_are_escaped(self, result: AnalysisResult) -> None:
        html = export_html(result, "abc")
        assert "https://example.com/missing?a=1&amp;b=2" in html
        assert "<title>Broken link report abc</title>" in html
        assert "Health score: 50%" in html
        assert "<li>Fix or remove 1 link(s)" in html


class TestExportResult:
    def test_json_matches_result_dict(self, result: AnalysisResult) -> None:
        assert json.loads(export_result(result, "json")) == result.to_dict()

    def test_format_is_case_insensitive(self, result: AnalysisResult) -> None:
        assert export_result(result, "CSV") == export_csv(result)

    def test_unknown_format(self, result: AnalysisResult) -> None:
        with pytest.raises(UnsupportedFormatError):
            export_result(result, "xml")

    def test_known_formats(self) -> None:
        assert set(EXPORT_FORMATS) == {"csv", "html", "json"}
