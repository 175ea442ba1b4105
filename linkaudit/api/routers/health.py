"""Liveness probe.

Routes
------
GET /health    {"service", "status", "timestamp"}
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from linkaudit.analysis.models import utcnow

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, Any]:
    return {
        "service": "linkaudit",
        "status": "ok",
        "timestamp": utcnow().isoformat(),
    }
