"""Shared dataclasses and boundary schemas for payout services."""

from poolpayout.services.schemas.contracts import Configured, ContractConfig, NotConfigured
from poolpayout.services.schemas.participants import (
    AlarmParticipant,
    FocusParticipant,
    Participant,
    PoolParticipant,
)
from poolpayout.services.schemas.results import (
    AllPoolsResult,
    BatchEntry,
    BatchResult,
    ClaimRecord,
    ClaimVoucher,
    MerkleCommitment,
    MerkleLeaf,
    PoolSummary,
    PoolTypeRun,
    ProcessingResult,
    RewardShare,
    ScheduledRunResult,
)

__all__ = [
    # Contract config
    "Configured",
    "ContractConfig",
    "NotConfigured",
    # Participants
    "AlarmParticipant",
    "FocusParticipant",
    "Participant",
    "PoolParticipant",
    # Results
    "AllPoolsResult",
    "BatchEntry",
    "BatchResult",
    "ClaimRecord",
    "ClaimVoucher",
    "MerkleCommitment",
    "MerkleLeaf",
    "PoolSummary",
    "PoolTypeRun",
    "ProcessingResult",
    "RewardShare",
    "ScheduledRunResult",
]
