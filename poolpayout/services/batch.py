"""Batch driver: every unfinalized pool of one type, oldest first."""

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog

from db.enums import BatchEntryStatus, ProcessingOutcome
from poolpayout.services.errors import PoolProcessingError
from poolpayout.services.orchestrator import Clock, PoolProcessor
from poolpayout.services.pools import PoolKey
from poolpayout.services.schemas.results import BatchEntry, BatchResult, ProcessingResult

logger = structlog.get_logger(__name__)

DEFAULT_INTER_POOL_DELAY: float = 3.0
DEFAULT_STALE_POOL_AGE: int = 48 * 3600

Sleep = Callable[[float], Awaitable[None]]


class BatchProcessor:
    """Drains the unfinalized pool list one pool at a time.

    A failed pool is recorded and the batch moves on; pools older than
    ``stale_pool_age`` are never picked up.
    """

    def __init__(
        self,
        processor: PoolProcessor,
        inter_pool_delay: float = DEFAULT_INTER_POOL_DELAY,
        stale_pool_age: int = DEFAULT_STALE_POOL_AGE,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.time,
    ) -> None:
        self.processor: PoolProcessor = processor
        self.inter_pool_delay: float = inter_pool_delay
        self.stale_pool_age: int = stale_pool_age
        self.sleep: Sleep = sleep
        self.clock: Clock = clock

    async def process_all(self, force: bool = False) -> BatchResult:
        pool_type = self.processor.pool_type
        keys: list[PoolKey] = self.processor.repository.fetch_unfinalized_pool_keys(
            int(self.clock()), self.stale_pool_age
        )
        result = BatchResult(pool_type=pool_type, total=len(keys))
        if not keys:
            logger.info("No unfinalized pools", pool_type=pool_type.value)
            return result

        logger.info("Starting batch", pool_type=pool_type.value, pool_count=len(keys), force=force)
        for index, key in enumerate(keys, start=1):
            if index > 1:
                await self.sleep(self.inter_pool_delay)
            logger.info(
                f"Processing pool {index}/{len(keys)}",
                pool_type=pool_type.value,
                day=key.day,
                period=key.period,
            )
            result.record(await self._process_one(key, force))

        logger.info(
            "Batch complete",
            pool_type=pool_type.value,
            total=result.total,
            succeeded=result.succeeded,
            failed=result.failed,
            skipped=result.skipped,
        )
        return result

    async def _process_one(self, key: PoolKey, force: bool) -> BatchEntry:
        try:
            outcome: ProcessingResult = await self.processor.process_pool(key, force=force)
        except PoolProcessingError as exc:
            return BatchEntry(pool_key=key, status=BatchEntryStatus.FAILED, reason=str(exc))
        except Exception as exc:
            logger.exception("Unexpected error while processing pool", day=key.day, period=key.period)
            return BatchEntry(
                pool_key=key,
                status=BatchEntryStatus.FAILED,
                reason=f"{type(exc).__name__}: {exc}",
            )

        if outcome.success:
            reason = "already published" if outcome.outcome is ProcessingOutcome.ALREADY_PUBLISHED else None
            return BatchEntry(
                pool_key=key,
                status=BatchEntryStatus.SUCCEEDED,
                reason=reason,
                transaction_hash=outcome.transaction_hash,
            )
        return BatchEntry(pool_key=key, status=BatchEntryStatus.SKIPPED, reason=outcome.message)
