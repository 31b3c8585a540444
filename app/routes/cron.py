"""Scheduled processing endpoint, hit by the platform cron at 00:30 and 12:30 UTC."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.dependencies import CronRunner, get_cron_runner, verify_cron_auth
from app.schemas.cron import CronResponse

logger: logging.Logger = logging.getLogger(__name__)

router = APIRouter(tags=["cron"])


@router.api_route(
    "/cron",
    methods=["GET", "POST"],
    response_model=CronResponse,
    dependencies=[Depends(verify_cron_auth)],
)
def run_cron(force: bool = False, runner: CronRunner = Depends(get_cron_runner)):
    result = runner(force)
    body = CronResponse.model_validate(result.to_dict())
    if not result.success:
        logger.error("Scheduled run failed for every pool type (pool %s)", result.pool_key)
        return JSONResponse(status_code=500, content=body.model_dump())
    return body
