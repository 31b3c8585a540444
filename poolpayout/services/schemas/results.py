"""Result dataclasses returned by service operations."""

from dataclasses import dataclass, field

from db.enums import BatchEntryStatus, PoolType, ProcessingOutcome
from poolpayout.services.pools import PoolKey


@dataclass(frozen=True)
class RewardShare:
    address: str
    amount: int
    weight: int | None = None
    session_id: int | None = None


@dataclass(frozen=True)
class MerkleLeaf:
    identity_key: str
    hash: int


@dataclass(frozen=True)
class MerkleCommitment:
    root: str
    proofs: dict[str, list[str]]


@dataclass(frozen=True)
class ClaimVoucher:
    message_hash: str
    signature_r: str
    signature_s: str
    public_key: str


@dataclass(frozen=True)
class ClaimRecord:
    record_id: str
    signature_r: str
    signature_s: str
    message_hash: str
    reward_amount: int
    merkle_proof: list[str]
    expiry_time: int
    processed_at: str


@dataclass
class PoolSummary:
    pool_type: PoolType
    day: int
    period: int
    merkle_root: str
    total_slashed_amount: int
    new_rewards: int
    protocol_fees: int
    transaction_hash: str | None
    total_users: int
    winners: int
    claims_written: int
    processed_at: str

    def to_dict(self) -> dict[str, object]:
        return {
            "pool_type": self.pool_type.value,
            "day": self.day,
            "period": self.period,
            "merkle_root": self.merkle_root,
            "total_slashed_amount": str(self.total_slashed_amount),
            "new_rewards": str(self.new_rewards),
            "protocol_fees": str(self.protocol_fees),
            "transaction_hash": self.transaction_hash,
            "total_users": self.total_users,
            "winners": self.winners,
            "claims_written": self.claims_written,
            "processed_at": self.processed_at,
        }


@dataclass
class ProcessingResult:
    outcome: ProcessingOutcome
    pool_key: PoolKey
    pool_summary: PoolSummary | None = None
    transaction_hash: str | None = None
    message: str | None = None
    remaining_seconds: int | None = None

    @property
    def success(self) -> bool:
        return self.outcome in (ProcessingOutcome.SUCCESS, ProcessingOutcome.ALREADY_PUBLISHED)

    @property
    def too_early(self) -> bool:
        return self.outcome is ProcessingOutcome.SKIPPED_TOO_EARLY

    def to_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            "outcome": self.outcome.value,
            "day": self.pool_key.day,
            "period": self.pool_key.period,
            "pool_info": self.pool_summary.to_dict() if self.pool_summary else None,
            "transaction_hash": self.transaction_hash,
            "message": self.message,
        }


@dataclass(frozen=True)
class BatchEntry:
    pool_key: PoolKey
    status: BatchEntryStatus
    reason: str | None = None
    transaction_hash: str | None = None


@dataclass
class BatchResult:
    pool_type: PoolType
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    entries: list[BatchEntry] = field(default_factory=list)

    @property
    def per_pool_reasons(self) -> dict[str, str]:
        return {
            str(entry.pool_key): entry.reason
            for entry in self.entries
            if entry.reason is not None
        }

    def record(self, entry: BatchEntry) -> None:
        self.entries.append(entry)
        if entry.status is BatchEntryStatus.SUCCEEDED:
            self.succeeded += 1
        elif entry.status is BatchEntryStatus.FAILED:
            self.failed += 1
        else:
            self.skipped += 1

    def to_dict(self) -> dict[str, object]:
        return {
            "pool_type": self.pool_type.value,
            "success": self.failed == 0,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "reasons": self.per_pool_reasons,
        }


@dataclass(frozen=True)
class PoolTypeRun:
    """One pool type's part of a scheduled run: a result, or the error that stopped it."""

    pool_type: PoolType
    result: ProcessingResult | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.result is not None and self.result.success

    def to_dict(self) -> dict[str, object]:
        if self.result is not None:
            return self.result.to_dict()
        return {"success": False, "outcome": "failed", "message": self.error}


@dataclass
class ScheduledRunResult:
    pool_key: PoolKey
    processed_at: str
    runs: list[PoolTypeRun] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return any(run.success for run in self.runs)

    def to_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            "pool": {"day": self.pool_key.day, "period": self.pool_key.period},
            **{run.pool_type.value: run.to_dict() for run in self.runs},
            "processed_at": self.processed_at,
        }


@dataclass
class AllPoolsResult:
    processed_at: str
    batches: list[BatchResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(batch.failed == 0 for batch in self.batches)

    def to_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            **{batch.pool_type.value: batch.to_dict() for batch in self.batches},
            "processed_at": self.processed_at,
        }
