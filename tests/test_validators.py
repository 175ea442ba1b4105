"""Tests for analysis request validation."""

from __future__ import annotations

import pytest

from linkaudit.analysis.validators import (
    MAX_TIMEOUT_MS,
    MIN_TIMEOUT_MS,
    InvalidTargetError,
    ensure_valid_target,
    validate_target_url,
    validate_timeout_ms,
)


class TestValidateTargetUrl:
    @pytest.mark.parametrize(
        "url",
        ["https://example.com", "http://example.com/path?q=1", "https://example.com:8443/"],
    )
    def test_accepts_http_urls(self, url: str) -> None:
        assert validate_target_url(url) == []

    @pytest.mark.parametrize("url", [None, "", "   "])
    def test_requires_url(self, url) -> None:
        assert validate_target_url(url) == ["URL is required"]

    def test_rejects_other_schemes(self) -> None:
        assert "Only http and https URLs can be analysed" in validate_target_url("ftp://example.com")

    def test_rejects_relative_url(self) -> None:
        errors = validate_target_url("/just/a/path")
        assert "URL is not valid" in errors

    def test_rejects_bad_port(self) -> None:
        assert validate_target_url("http://example.com:99999/") == ["URL is not valid"]

    def test_rejects_private_network(self) -> None:
        assert validate_target_url("http://192.168.1.10/") == [
            "Private network addresses cannot be analysed"
        ]

    def test_localhost_allowed_outside_production(self, monkeypatch) -> None:
        monkeypatch.setattr("linkaudit.analysis.validators.settings.environment", "development")
        assert validate_target_url("http://localhost:3000/") == []

    def test_localhost_refused_in_production(self, monkeypatch) -> None:
        monkeypatch.setattr("linkaudit.analysis.validators.settings.environment", "production")
        assert validate_target_url("http://localhost:3000/") == [
            "Local addresses cannot be analysed in production"
        ]


class TestValidateTimeout:
    def test_none_is_fine(self) -> None:
        assert validate_timeout_ms(None) == []

    def test_bounds_inclusive(self) -> None:
        assert validate_timeout_ms(MIN_TIMEOUT_MS) == []
        assert validate_timeout_ms(MAX_TIMEOUT_MS) == []

    @pytest.mark.parametrize("timeout", [0, MIN_TIMEOUT_MS - 1, MAX_TIMEOUT_MS + 1])
    def test_out_of_range(self, timeout: int) -> None:
        assert len(validate_timeout_ms(timeout)) == 1


class TestEnsureValidTarget:
    def test_returns_stripped_url(self) -> None:
        assert ensure_valid_target("  https://example.com/  ") == "https://example.com/"

    def test_raises_with_all_errors(self) -> None:
        with pytest.raises(InvalidTargetError) as exc_info:
            ensure_valid_target("")
        assert exc_info.value.errors == ["URL is required"]
        assert isinstance(exc_info.value, ValueError)
