"""Cron entry points: the scheduled pool for every type, or every backlog."""

import asyncio
import time
from collections.abc import Sequence

import structlog

from poolpayout.services._helpers import iso_from_timestamp
from poolpayout.services.batch import DEFAULT_INTER_POOL_DELAY, BatchProcessor, Sleep
from poolpayout.services.errors import PoolProcessingError
from poolpayout.services.orchestrator import PoolProcessor
from poolpayout.services.pools import PoolKey, scheduled_pool_key
from poolpayout.services.schemas.results import (
    AllPoolsResult,
    BatchResult,
    PoolTypeRun,
    ScheduledRunResult,
)

logger = structlog.get_logger(__name__)


async def process_scheduled_pools(
    processors: Sequence[PoolProcessor],
    now: int | None = None,
    force: bool = False,
    inter_pool_delay: float = DEFAULT_INTER_POOL_DELAY,
    sleep: Sleep = asyncio.sleep,
) -> ScheduledRunResult:
    """Process the cron pool for each type in order.

    One type failing does not stop the next; the run succeeds when any
    type succeeded.
    """
    now = int(time.time()) if now is None else now
    key: PoolKey = scheduled_pool_key(now)
    result = ScheduledRunResult(pool_key=key, processed_at=iso_from_timestamp(now))
    logger.info("Starting scheduled pool processing", day=key.day, period=key.period, force=force)

    for index, processor in enumerate(processors):
        if index > 0:
            await sleep(inter_pool_delay)
        pool_type = processor.pool_type
        try:
            outcome = await processor.process_pool(key, force=force)
            run = PoolTypeRun(pool_type=pool_type, result=outcome)
        except PoolProcessingError as exc:
            run = PoolTypeRun(pool_type=pool_type, error=f"{pool_type.value} processing error: {exc}")
        except Exception as exc:
            logger.exception("Unexpected error in scheduled run", pool_type=pool_type.value)
            run = PoolTypeRun(pool_type=pool_type, error=f"{pool_type.value} processing error: {exc}")
        logger.info("Pool type finished", pool_type=pool_type.value, success=run.success)
        result.runs.append(run)

    logger.info("Scheduled pool processing completed", success=result.success)
    return result


async def process_all_pool_types(
    batches: Sequence[BatchProcessor],
    force: bool = False,
    now: int | None = None,
) -> AllPoolsResult:
    """Drain the unfinalized backlog of every pool type; success means no failures."""
    now = int(time.time()) if now is None else now
    result = AllPoolsResult(processed_at=iso_from_timestamp(now))
    for batch in batches:
        try:
            result.batches.append(await batch.process_all(force=force))
        except PoolProcessingError as exc:
            pool_type = batch.processor.pool_type
            batch.processor.repository.rollback()
            logger.error("Could not list pools", pool_type=pool_type.value, error=str(exc))
            result.batches.append(BatchResult(pool_type=pool_type, failed=1))
    logger.info("Batch processing for all pool types completed", success=result.success)
    return result
