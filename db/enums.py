"""Enumeration types for the pool payout engine."""

from enum import Enum


class PoolType(str, Enum):
    """Kind of staked pool. Decides the reward mode and the claim struct."""

    ALARM = "alarm"  # binary outcome: snooze count slashes the stake
    FOCUS = "focus"  # weighted outcome: stake x duration for completed locks


class PoolPeriod(int, Enum):
    """Half of a UTC day covered by a pool."""

    AM = 0  # 00:00-11:59 UTC
    PM = 1  # 12:00-23:59 UTC


class ProcessingOutcome(str, Enum):
    """How a single pool run ended, when it did not raise."""

    SUCCESS = "success"
    ALREADY_PUBLISHED = "already_published"
    SKIPPED_TOO_EARLY = "skipped_too_early"
    SKIPPED_EMPTY = "skipped_empty"


class BatchEntryStatus(str, Enum):
    """Status of one pool inside a batch run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class ExecutionStatus(str, Enum):
    """Execution status of a confirmed ledger transaction."""

    SUCCEEDED = "SUCCEEDED"
    REVERTED = "REVERTED"
    REJECTED = "REJECTED"
