"""Health check endpoints.

- /health - Service status and LLM credential presence
- /health/db - Connection pool health and schema check
"""

from __future__ import annotations

import os
import sqlite3
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from concierge.config import APP_VERSION
from concierge.infrastructure.database import get_pool_stats, validate_schema

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check() -> dict[str, Any]:
    """Service status, version and LLM readiness (presence check only, no API call)."""
    has_project = bool(os.getenv("GOOGLE_CLOUD_PROJECT"))
    use_llm = os.getenv("CONCIERGE_USE_LLM", "false").lower() == "true"

    return {
        "status": "healthy",
        "service": "Concierge API",
        "version": APP_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "llm": {
            "enabled": use_llm,
            "ready": has_project,
        },
    }


@router.get("/health/db")
def database_health() -> dict[str, Any]:
    """Pool usage plus schema validation. Degraded above 80% usage or on a bad schema."""
    try:
        schema_ok = validate_schema()
        schema_error = None
    except (ValueError, FileNotFoundError, sqlite3.Error) as e:
        schema_ok = False
        schema_error = str(e)

    stats = get_pool_stats()
    degraded = stats["usage_percent"] > 80 or not schema_ok
    return {
        "status": "degraded" if degraded else "healthy",
        "pool": stats,
        "schema_ok": schema_ok,
        "schema_error": schema_error,
    }
