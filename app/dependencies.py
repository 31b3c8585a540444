"""FastAPI dependencies: cron auth and the scheduled-run callable."""

import asyncio
from collections.abc import Callable

from fastapi import Header, HTTPException

from config import get_settings
from poolpayout.services.scheduler import process_scheduled_pools
from poolpayout.services.schemas.results import ScheduledRunResult
from poolpayout.services.wiring import open_processors

CronRunner = Callable[[bool], ScheduledRunResult]


def verify_cron_auth(authorization: str = Header(default="")) -> None:
    """Bearer CRON secret. Open when no secret is set."""
    secret: str | None = get_settings().cron_secret
    if not secret:
        return
    if authorization != f"Bearer {secret}":
        raise HTTPException(status_code=401, detail="Unauthorized")


def _run_scheduled(force: bool) -> ScheduledRunResult:
    settings = get_settings()
    with open_processors(settings) as processors:
        return asyncio.run(
            process_scheduled_pools(
                processors, force=force, inter_pool_delay=settings.inter_pool_delay
            )
        )


def get_cron_runner() -> CronRunner:
    return _run_scheduled
