"""Builds processors from settings and explicit session/ledger handles."""

import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager

from sqlalchemy.orm import Session

from config import Settings
from db.connection import get_session
from db.enums import PoolType
from poolpayout.services.batch import BatchProcessor
from poolpayout.services.ledger_client import LedgerClient, StarknetLedgerClient
from poolpayout.services.orchestrator import PROCESSORS, Clock, PoolProcessor
from poolpayout.services.storage import REPOSITORIES

# Processing order for scheduled runs.
POOL_TYPE_ORDER: tuple[PoolType, ...] = (PoolType.ALARM, PoolType.FOCUS)


def build_processor(
    pool_type: PoolType,
    settings: Settings,
    session: Session,
    ledger: LedgerClient,
    clock: Clock = time.time,
) -> PoolProcessor:
    return PROCESSORS[pool_type](
        repository=REPOSITORIES[pool_type](session),
        ledger=ledger,
        contract=settings.contract(pool_type),
        chain_id=settings.starknet.chain_id,
        confirmation_timeout=settings.starknet.confirmation_timeout,
        clock=clock,
    )


def build_processors(
    settings: Settings,
    session: Session,
    ledger: LedgerClient,
    pool_types: Sequence[PoolType] = POOL_TYPE_ORDER,
    clock: Clock = time.time,
) -> list[PoolProcessor]:
    return [build_processor(pt, settings, session, ledger, clock) for pt in pool_types]


def build_batch_processors(
    settings: Settings, processors: Sequence[PoolProcessor]
) -> list[BatchProcessor]:
    return [
        BatchProcessor(
            processor,
            inter_pool_delay=settings.inter_pool_delay,
            stale_pool_age=settings.stale_pool_age,
            clock=processor.clock,
        )
        for processor in processors
    ]


@contextmanager
def open_processors(
    settings: Settings,
    pool_types: Sequence[PoolType] = POOL_TYPE_ORDER,
    ledger: LedgerClient | None = None,
) -> Iterator[list[PoolProcessor]]:
    """Processors over one database session and one deployer account."""
    client: LedgerClient = ledger or StarknetLedgerClient.from_settings(settings.starknet)
    with get_session() as session:
        yield build_processors(settings, session, client, pool_types)
