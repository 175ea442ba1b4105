"""Tests for the analysis dataclass helpers."""

from __future__ import annotations

import pytest

from linkaudit.analysis.models import compute_health_score


class TestComputeHealthScore:
    @pytest.mark.parametrize(
        "total, broken, expected",
        [
            (0, 0, 100),
            (4, 0, 100),
            (2, 1, 50),
            (3, 1, 67),
            (8, 3, 63),
            (8, 5, 38),
            (200, 1, 100),
            (3, 3, 0),
        ],
    )
    def test_rounds_half_up(self, total, broken, expected) -> None:
        assert compute_health_score(total, broken) == expected

    def test_clamped_to_zero(self) -> None:
        assert compute_health_score(3, 5) == 0
