"""Tests for poolpayout.services.calculator."""

import pytest

from poolpayout.services.calculator import (
    aggregate_rewards_by_address,
    net_reward_pool,
    pool_totals,
    proportional_shares,
    protocol_fee,
    stake_return,
    total_slashed,
    validate_participants,
    weighted_shares,
)
from poolpayout.services.errors import ValidationError
from poolpayout.services.numeric import FELT_PRIME
from poolpayout.services.schemas.participants import AlarmParticipant, FocusParticipant
from poolpayout.services.schemas.results import RewardShare


def _alarm(record_id: str, address: str, stake: int, snoozes: int) -> AlarmParticipant:
    return AlarmParticipant(
        record_id=record_id,
        address=address,
        stake_amount=stake,
        alarm_id=int(record_id.lstrip("a") or 0),
        wakeup_time=1_728_003_600,
        snooze_count=snoozes,
    )


def _lock(
    record_id: str, address: str, stake: int, duration: int, completed: bool, session_id: int
) -> FocusParticipant:
    return FocusParticipant(
        record_id=record_id,
        address=address,
        stake_amount=stake,
        session_id=session_id,
        start_time=1_728_003_600,
        duration=duration,
        completed=completed,
    )


class TestStakeReturn:
    @pytest.mark.parametrize(
        ("level", "expected"),
        [(0, 1000), (1, 800), (2, 500), (3, 0), (7, 0)],
    )
    def test_levels(self, level: int, expected: int) -> None:
        assert stake_return(1000, level) == expected

    def test_floor_division(self) -> None:
        assert stake_return(99, 1) == 79
        assert stake_return(3, 2) == 1

    def test_never_exceeds_stake(self) -> None:
        for stake in (0, 1, 7, 10**30):
            for level in range(5):
                assert stake_return(stake, level) <= stake

    def test_negative_level_rejected(self) -> None:
        with pytest.raises(ValueError):
            stake_return(100, -1)


class TestPoolTotals:
    def test_no_penalties_means_nothing_slashed(self) -> None:
        users = [_alarm("a1", "0x1", 100, 0), _alarm("a2", "0x2", 50, 0)]
        assert total_slashed(users) == 0

    def test_fee_and_net(self) -> None:
        assert protocol_fee(120) == 12
        assert net_reward_pool(120) == 108
        assert protocol_fee(9) == 0
        assert net_reward_pool(9) == 9

    def test_end_to_end_example(self) -> None:
        users = [
            _alarm("a1", "0x1", 100, 0),
            _alarm("a2", "0x2", 100, 1),
            _alarm("a3", "0x3", 100, 3),
        ]
        assert [stake_return(u.stake_amount, u.penalty_level) for u in users] == [100, 80, 0]

        totals = pool_totals(users)
        assert totals.total_slashed == 120
        assert totals.protocol_fee == 12
        assert totals.net_reward_pool == 108

        shares = proportional_shares(users, totals.net_reward_pool)
        assert shares == [RewardShare(address="0x1", amount=108, weight=100)]


class TestProportionalShares:
    def test_split_by_stake(self) -> None:
        users = [
            _alarm("a1", "0x1", 100, 0),
            _alarm("a2", "0x2", 300, 0),
            _alarm("a3", "0x3", 100, 2),
        ]
        shares = proportional_shares(users, 1000)
        assert [s.amount for s in shares] == [250, 750]

    def test_dust_stays_undistributed(self) -> None:
        users = [_alarm(f"a{i}", f"0x{i}", 1, 0) for i in range(1, 4)]
        shares = proportional_shares(users, 10)
        assert [s.amount for s in shares] == [3, 3, 3]
        assert 10 - sum(s.amount for s in shares) <= len(users)

    def test_no_winners(self) -> None:
        users = [_alarm("a1", "0x1", 100, 1)]
        assert proportional_shares(users, 1000) == []

    def test_empty_pool(self) -> None:
        users = [_alarm("a1", "0x1", 100, 0)]
        assert proportional_shares(users, 0) == []

    def test_zero_winner_stake(self) -> None:
        users = [_alarm("a1", "0x1", 0, 0)]
        assert proportional_shares(users, 500) == []


class TestWeightedShares:
    def test_weight_is_stake_times_duration(self) -> None:
        locks = [
            _lock("f1", "0x1", 100, 3600, True, 1),
            _lock("f2", "0x2", 100, 1800, True, 2),
            _lock("f3", "0x3", 100, 3600, False, 3),
        ]
        shares = weighted_shares(locks, 900)
        assert [(s.address, s.session_id, s.amount) for s in shares] == [
            ("0x1", 1, 600),
            ("0x2", 2, 300),
        ]
        assert shares[0].weight == 360_000

    def test_one_share_per_lock(self) -> None:
        locks = [
            _lock("f1", "0x1", 100, 60, True, 1),
            _lock("f2", "0x1", 100, 60, True, 2),
        ]
        shares = weighted_shares(locks, 100)
        assert len(shares) == 2
        assert {s.session_id for s in shares} == {1, 2}

    def test_no_completed_locks(self) -> None:
        assert weighted_shares([_lock("f1", "0x1", 100, 60, False, 1)], 100) == []

    def test_zero_total_weight(self) -> None:
        assert weighted_shares([_lock("f1", "0x1", 100, 0, True, 1)], 100) == []


def test_aggregate_rewards_by_address() -> None:
    shares = [
        RewardShare(address="0x1", amount=10),
        RewardShare(address="0x2", amount=5),
        RewardShare(address="0x1", amount=7),
    ]
    assert aggregate_rewards_by_address(shares) == {"0x1": 17, "0x2": 5}


class TestValidateParticipants:
    def test_valid(self) -> None:
        validate_participants([_alarm("a1", "0x1", 100, 0)])

    def test_missing_address(self) -> None:
        with pytest.raises(ValidationError, match="invalid address"):
            validate_participants([_alarm("a1", "", 100, 0)])

    def test_unprefixed_address(self) -> None:
        with pytest.raises(ValidationError):
            validate_participants([_alarm("a1", "1234", 100, 0)])

    def test_non_hex_address(self) -> None:
        with pytest.raises(ValidationError, match="invalid address"):
            validate_participants([_alarm("a1", "0xZZ", 100, 0)])

    def test_address_outside_felt_range(self) -> None:
        with pytest.raises(ValidationError, match="invalid address"):
            validate_participants([_alarm("a1", hex(FELT_PRIME), 100, 0)])
        validate_participants([_alarm("a1", hex(FELT_PRIME - 1), 100, 0)])

    def test_negative_stake(self) -> None:
        with pytest.raises(ValidationError, match="u256"):
            validate_participants([_alarm("a1", "0x1", -1, 0)])

    def test_stake_too_wide(self) -> None:
        with pytest.raises(ValidationError, match="u256"):
            validate_participants([_alarm("a1", "0x1", 1 << 256, 0)])

    def test_reports_every_problem(self) -> None:
        with pytest.raises(ValidationError, match="2 invalid participant"):
            validate_participants([_alarm("a1", "", 100, 0), _alarm("a2", "0x2", -5, 0)])
