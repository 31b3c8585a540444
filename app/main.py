"""FastAPI application entry point."""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.routes import cron, health
from app.schemas.common import ErrorResponse
from config import Settings, get_settings
from db.connection import init_database
from poolpayout import __version__
from poolpayout.logs import setup_logging

logger: logging.Logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = get_settings()
    setup_logging(settings.logging.level, settings.logging.format)
    logger.info("DB: %s", settings.database.db_info_for_logging())

    init_database()
    yield


def create_app() -> FastAPI:
    app: FastAPI = FastAPI(
        title="Pool Payout Processor",
        version=__version__,
        lifespan=_lifespan,
    )

    @app.exception_handler(Exception)
    async def _on_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled: %s", exc)
        body = ErrorResponse(detail=str(exc), type=type(exc).__name__)
        return JSONResponse(status_code=500, content=body.model_dump())

    app.include_router(health.router)
    app.include_router(cron.router)

    return app


app: FastAPI = create_app()


def start() -> None:
    """Entry point for poolpayout-api."""
    root: Path = Path(__file__).resolve().parent.parent
    os.chdir(root)

    for candidate in (root / ".env", root.parent / ".env"):
        if candidate.exists():
            load_dotenv(candidate, override=False)

    reload: bool = os.environ.get("POOLPAYOUT_RELOAD", "false").lower() in ("1", "true", "yes")
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=int(os.environ.get("PORT", "8000")),
        reload=reload,
    )
