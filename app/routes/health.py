"""Health endpoints."""

import logging
import os

from fastapi import APIRouter
from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from app.schemas.common import HealthResponse
from db.connection import REQUIRED_TABLES, get_engine

logger: logging.Logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="ok")


@router.get("/health/db")
def health_db() -> dict[str, object]:
    """Table presence check. Never raises."""
    try:
        engine: Engine = get_engine()
        existing: set[str] = set(inspect(engine).get_table_names())
        return {
            "backend_type": engine.dialect.name,
            "tables_present": sorted(existing),
            "tables_missing": [t for t in REQUIRED_TABLES if t not in existing],
            "pid": os.getpid(),
        }
    except Exception as e:
        logger.exception("Health DB check failed: %s", e)
        return {"backend_type": "unknown", "error": str(e), "pid": os.getpid()}
