"""Tests for poolpayout.services.storage."""

from collections.abc import Callable

import pytest
from conftest import POOL, WALLET_A, WALLET_B
from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models import Alarms, FocusLocks, UserClaimData
from poolpayout.services.errors import StorageError
from poolpayout.services.pools import PoolKey
from poolpayout.services.schemas.participants import AlarmParticipant, FocusParticipant
from poolpayout.services.schemas.results import ClaimRecord
from poolpayout.services.storage import AlarmRepository, FocusLockRepository


def _claim(record_id: str, reward: int = 0) -> ClaimRecord:
    return ClaimRecord(
        record_id=record_id,
        signature_r="0x1",
        signature_s="0x2",
        message_hash="0x3",
        reward_amount=reward,
        merkle_proof=["0xaa", "0xbb"],
        expiry_time=1_728_200_000,
        processed_at="2024-10-04T00:30:00+00:00",
    )


class TestFetchParticipants:
    def test_filters_and_orders(self, session: Session, make_alarm: Callable[..., Alarms]) -> None:
        late = make_alarm(WALLET_B, stake=200, wakeup_time=POOL.start + 7200, alarm_id="2")
        early = make_alarm(WALLET_A, stake=100, snooze_count=1, wakeup_time=POOL.start, alarm_id="1")
        make_alarm(WALLET_A, stake=0, alarm_id="3")  # zero stake
        make_alarm(WALLET_A, alarm_id=None)  # not on-chain
        make_alarm(WALLET_A, alarm_id="4", deleted=True)
        make_alarm(WALLET_A, alarm_id="5", wakeup_time=POOL.end)  # next pool

        participants = AlarmRepository(session).fetch_participants(POOL)

        assert [p.record_id for p in participants] == [early.id, late.id]
        first = participants[0]
        assert isinstance(first, AlarmParticipant)
        assert first.address == WALLET_A
        assert first.stake_amount == 100
        assert first.penalty_level == 1
        assert first.alarm_id == 1

    def test_wide_stake_survives(self, session: Session, make_alarm: Callable[..., Alarms]) -> None:
        big: int = (1 << 200) + 17
        make_alarm(stake=big)
        [participant] = AlarmRepository(session).fetch_participants(POOL)
        assert participant.stake_amount == big

    def test_missing_wallet_becomes_empty_address(
        self, session: Session, make_alarm: Callable[..., Alarms]
    ) -> None:
        make_alarm(wallet=None)
        [participant] = AlarmRepository(session).fetch_participants(POOL)
        assert participant.address == ""

    def test_unparseable_row_is_storage_error(
        self, session: Session, make_alarm: Callable[..., Alarms]
    ) -> None:
        make_alarm(alarm_id="not-a-number")
        with pytest.raises(StorageError, match="failed to parse"):
            AlarmRepository(session).fetch_participants(POOL)

    def test_focus_locks(self, session: Session, make_focus_lock: Callable[..., FocusLocks]) -> None:
        make_focus_lock(WALLET_A, session_id="9", duration=3600, completed=False)
        [lock] = FocusLockRepository(session).fetch_participants(POOL)
        assert isinstance(lock, FocusParticipant)
        assert lock.session_id == 9
        assert lock.penalty_level == 3
        assert lock.identity_key == f"{WALLET_A}_9"


class TestPoolDiscovery:
    def test_unfinalized_pool_keys_oldest_first(
        self, session: Session, make_alarm: Callable[..., Alarms]
    ) -> None:
        now: int = POOL.end + 3600
        make_alarm(wakeup_time=POOL.start + 50_000)  # next pool (PM)
        make_alarm(wakeup_time=POOL.start + 10)
        make_alarm(wakeup_time=POOL.start + 20)
        make_alarm(wakeup_time=POOL.start + 30, claim_ready=True)
        make_alarm(wakeup_time=now - 48 * 3600 - 1)  # stale

        keys = AlarmRepository(session).fetch_unfinalized_pool_keys(now, 48 * 3600)

        assert keys == [POOL, PoolKey(POOL.day, 1)]

    def test_latest_pool_key(self, session: Session, make_alarm: Callable[..., Alarms]) -> None:
        repo = AlarmRepository(session)
        assert repo.find_latest_pool_key() is None
        make_alarm(wakeup_time=POOL.start + 10)
        make_alarm(wakeup_time=POOL.start + 86400)
        assert repo.find_latest_pool_key() == PoolKey(POOL.day + 1, 0)


class TestWrites:
    def test_update_and_insert(self, session: Session, make_alarm: Callable[..., Alarms]) -> None:
        alarm = make_alarm()
        repo = AlarmRepository(session)

        repo.update_participant(alarm.id, claim_ready=True, has_claimed=False)
        assert repo.insert_claim_records([_claim(alarm.id, reward=108)]) == 1
        repo.commit()

        assert session.get(Alarms, alarm.id).claim_ready is True
        stored = repo.claim_records([alarm.id])[alarm.id]
        assert stored.reward_amount == 108
        assert stored.merkle_proof == ["0xaa", "0xbb"]
        assert repo.existing_claim_record_ids([alarm.id, "other"]) == {alarm.id}

    def test_claims_scoped_by_pool_type(
        self,
        session: Session,
        make_alarm: Callable[..., Alarms],
    ) -> None:
        alarm = make_alarm()
        AlarmRepository(session).insert_claim_records([_claim(alarm.id)])
        assert FocusLockRepository(session).existing_claim_record_ids([alarm.id]) == set()

    def test_update_unknown_record(self, session: Session) -> None:
        with pytest.raises(StorageError, match="not found"):
            AlarmRepository(session).update_participant("missing", claim_ready=True)

    def test_update_rejects_other_fields(
        self, session: Session, make_alarm: Callable[..., Alarms]
    ) -> None:
        alarm = make_alarm()
        with pytest.raises(ValueError):
            AlarmRepository(session).update_participant(alarm.id, stake_amount=True)

    def test_duplicate_claim_is_storage_error(
        self, session: Session, make_alarm: Callable[..., Alarms]
    ) -> None:
        alarm = make_alarm()
        repo = AlarmRepository(session)
        repo.insert_claim_records([_claim(alarm.id)])
        with pytest.raises(StorageError):
            repo.insert_claim_records([_claim(alarm.id)])
        repo.rollback()
        assert session.scalars(select(UserClaimData)).all() == []
