"""Slashing and reward distribution over a pool's participants.

Every function here is pure: integer in, integer out, floor division
throughout. Residual dust from flooring stays in the slashed pool.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from poolpayout.services.errors import ValidationError
from poolpayout.services.numeric import FELT_PRIME, U256_LIMIT
from poolpayout.services.schemas.participants import FocusParticipant, Participant, PoolParticipant
from poolpayout.services.schemas.results import RewardShare

logger = structlog.get_logger(__name__)

PROTOCOL_FEE_PERCENT: int = 10

# Percentage of stake returned per penalty level; levels past the table return 0.
_RETURN_PERCENT: tuple[int, ...] = (100, 80, 50)

_ADDRESS_PATTERN: re.Pattern[str] = re.compile(r"0x[0-9a-fA-F]+")


@dataclass(frozen=True)
class PoolTotals:
    total_slashed: int
    protocol_fee: int
    net_reward_pool: int


def stake_return(stake: int, penalty_level: int) -> int:
    if penalty_level < 0:
        raise ValueError(f"penalty_level must be >= 0, got {penalty_level}")
    if penalty_level >= len(_RETURN_PERCENT):
        return 0
    return stake * _RETURN_PERCENT[penalty_level] // 100


def total_slashed(participants: Sequence[PoolParticipant]) -> int:
    return sum(
        p.stake_amount - stake_return(p.stake_amount, p.penalty_level) for p in participants
    )


def protocol_fee(pool: int) -> int:
    return pool * PROTOCOL_FEE_PERCENT // 100


def net_reward_pool(pool: int) -> int:
    return pool - protocol_fee(pool)


def pool_totals(participants: Sequence[PoolParticipant]) -> PoolTotals:
    slashed: int = total_slashed(participants)
    fee: int = protocol_fee(slashed)
    return PoolTotals(total_slashed=slashed, protocol_fee=fee, net_reward_pool=slashed - fee)


def proportional_shares(participants: Sequence[PoolParticipant], net_pool: int) -> list[RewardShare]:
    """Split ``net_pool`` across penalty-free participants by stake."""
    winners: list[PoolParticipant] = [p for p in participants if p.penalty_level == 0]
    if not winners or net_pool == 0:
        return []

    total_winner_stake: int = sum(w.stake_amount for w in winners)
    if total_winner_stake == 0:
        logger.warning("Winners hold no stake, nothing to distribute", winners=len(winners))
        return []

    return [
        RewardShare(
            address=w.address,
            amount=net_pool * w.stake_amount // total_winner_stake,
            weight=w.stake_amount,
        )
        for w in winners
    ]


def weighted_shares(participants: Sequence[FocusParticipant], net_pool: int) -> list[RewardShare]:
    """Split ``net_pool`` across completed locks by stake x duration.

    One share per winning lock, never merged per address.
    """
    winners: list[FocusParticipant] = [p for p in participants if p.completed]
    if not winners or net_pool == 0:
        return []

    weights: list[int] = [w.stake_amount * w.duration for w in winners]
    total_weight: int = sum(weights)
    if total_weight == 0:
        logger.warning("Completed locks carry no weight, nothing to distribute", winners=len(winners))
        return []

    return [
        RewardShare(
            address=w.address,
            amount=net_pool * weight // total_weight,
            weight=weight,
            session_id=w.session_id,
        )
        for w, weight in zip(winners, weights, strict=True)
    ]


def aggregate_rewards_by_address(shares: Sequence[RewardShare]) -> dict[str, int]:
    totals: dict[str, int] = {}
    for share in shares:
        totals[share.address] = totals.get(share.address, 0) + share.amount
    return totals


def validate_participants(participants: Sequence[Participant]) -> None:
    """Raise ValidationError listing every malformed participant.

    Runs before any ledger or storage mutation for the pool.
    """
    problems: list[str] = []
    for p in participants:
        if not _ADDRESS_PATTERN.fullmatch(p.address) or int(p.address, 16) >= FELT_PRIME:
            problems.append(f"{p.record_id}: invalid address {p.address!r}")
        if not 0 <= p.stake_amount < U256_LIMIT:
            problems.append(f"{p.record_id}: stake {p.stake_amount} outside u256 range")
    if problems:
        raise ValidationError(
            f"{len(problems)} invalid participant(s): " + "; ".join(problems)
        )
