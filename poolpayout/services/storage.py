"""Storage boundary: pool participants in, claim records out.

Rows are parsed into pydantic participant schemas here; a row that does not
parse is a StorageError naming the record, never a silently-cast value.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import ClassVar, Generic, TypeVar

import pydantic
import structlog
from sqlalchemy import Select, and_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import InstrumentedAttribute, Session

from db.enums import PoolType
from db.models import Alarms, FocusLocks, Profiles, UserClaimData
from poolpayout.services._helpers import dump_json, load_json_list, new_id
from poolpayout.services.errors import StorageError
from poolpayout.services.pools import PoolKey
from poolpayout.services.schemas.participants import (
    AlarmParticipant,
    FocusParticipant,
    Participant,
)
from poolpayout.services.schemas.results import ClaimRecord

logger = structlog.get_logger(__name__)

_UPDATABLE_FIELDS: frozenset[str] = frozenset({"claim_ready", "has_claimed"})

RowT = TypeVar("RowT", Alarms, FocusLocks)
ParticipantT = TypeVar("ParticipantT", bound=Participant)


class PoolRepository(ABC, Generic[RowT, ParticipantT]):
    """Per-pool-type access to participant rows and claim data."""

    pool_type: ClassVar[PoolType]
    model: type[RowT]

    def __init__(self, session: Session) -> None:
        self.session: Session = session

    # ------------------------------------------------------------------
    # Pool-type specifics
    # ------------------------------------------------------------------

    @classmethod
    @abstractmethod
    def _time_column(cls) -> InstrumentedAttribute[int]: ...

    @classmethod
    @abstractmethod
    def _onchain_id_column(cls) -> InstrumentedAttribute[str | None]: ...

    @abstractmethod
    def _to_participant(self, row: RowT, address: str) -> ParticipantT: ...

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def fetch_participants(self, key: PoolKey) -> list[ParticipantT]:
        start, end = key.time_range()
        time_col = self._time_column()
        stmt: Select[tuple[RowT, str | None]] = (
            select(self.model, Profiles.wallet_address)
            .join(Profiles, self.model.user_id == Profiles.id)
            .where(
                and_(
                    time_col >= start,
                    time_col < end,
                    self.model.stake_amount != "0",
                    self._onchain_id_column().is_not(None),
                    self.model.deleted.is_(False),
                )
            )
            .order_by(time_col, self.model.id)
        )
        try:
            rows = self.session.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to fetch {self.pool_type.value} records for {key}: {exc}") from exc

        participants: list[ParticipantT] = []
        for row, wallet in rows:
            try:
                participants.append(self._to_participant(row, wallet or ""))
            except pydantic.ValidationError as exc:
                raise StorageError(
                    f"{self.pool_type.value} record {row.id} failed to parse: {exc.error_count()} error(s)"
                ) from exc

        logger.info(
            "Fetched pool participants",
            pool_type=self.pool_type.value,
            day=key.day,
            period=key.period,
            count=len(participants),
        )
        return participants

    def fetch_unfinalized_pool_keys(self, now: int, max_age: int) -> list[PoolKey]:
        """Pool keys with unfinalized records newer than ``now - max_age``, oldest first."""
        time_col = self._time_column()
        cutoff: int = now - max_age
        stmt = (
            select(time_col)
            .where(and_(self.model.claim_ready.is_(False), time_col >= cutoff))
            .order_by(time_col)
        )
        try:
            timestamps: Sequence[int] = self.session.scalars(stmt).all()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to find unfinalized {self.pool_type.value} pools: {exc}") from exc

        keys: list[PoolKey] = list(dict.fromkeys(PoolKey.from_timestamp(ts) for ts in timestamps))
        logger.info(
            "Found unfinalized pools",
            pool_type=self.pool_type.value,
            pool_count=len(keys),
            record_count=len(timestamps),
        )
        return keys

    def find_latest_pool_key(self) -> PoolKey | None:
        time_col = self._time_column()
        stmt = select(time_col).order_by(time_col.desc()).limit(1)
        try:
            latest: int | None = self.session.scalar(stmt)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to find latest {self.pool_type.value} pool: {exc}") from exc
        if latest is None:
            return None
        return PoolKey.from_timestamp(latest)

    def existing_claim_record_ids(self, record_ids: Iterable[str]) -> set[str]:
        return set(self.claim_records(record_ids))

    def claim_records(self, record_ids: Iterable[str]) -> dict[str, ClaimRecord]:
        ids: list[str] = list(record_ids)
        if not ids:
            return {}
        stmt = select(UserClaimData).where(
            and_(
                UserClaimData.pool_type == self.pool_type.value,
                UserClaimData.record_id.in_(ids),
            )
        )
        try:
            rows: Sequence[UserClaimData] = self.session.scalars(stmt).all()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to read claim data: {exc}") from exc
        return {
            row.record_id: ClaimRecord(
                record_id=row.record_id,
                signature_r=row.signature_r,
                signature_s=row.signature_s,
                message_hash=row.message_hash,
                reward_amount=int(row.reward_amount),
                merkle_proof=[str(p) for p in load_json_list(row.merkle_proof)],
                expiry_time=row.expiry_time,
                processed_at=row.processed_at,
            )
            for row in rows
        }

    # ------------------------------------------------------------------
    # Writes (caller commits)
    # ------------------------------------------------------------------

    def update_participant(self, record_id: str, **fields: bool) -> None:
        unknown: set[str] = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields {sorted(unknown)}")
        try:
            row = self.session.get(self.model, record_id)
            if row is None:
                raise StorageError(f"{self.pool_type.value} record {record_id} not found")
            for name, value in fields.items():
                setattr(row, name, value)
            self.session.flush()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to update {self.pool_type.value} record {record_id}: {exc}") from exc

    def insert_claim_records(self, records: Sequence[ClaimRecord]) -> int:
        try:
            self.session.add_all(
                [
                    UserClaimData(
                        id=new_id(),
                        pool_type=self.pool_type.value,
                        record_id=r.record_id,
                        signature_r=r.signature_r,
                        signature_s=r.signature_s,
                        message_hash=r.message_hash,
                        reward_amount=str(r.reward_amount),
                        merkle_proof=dump_json(r.merkle_proof),
                        expiry_time=r.expiry_time,
                        processed_at=r.processed_at,
                    )
                    for r in records
                ]
            )
            self.session.flush()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to insert {len(records)} claim record(s): {exc}") from exc
        return len(records)

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError(f"Commit failed: {exc}") from exc

    def rollback(self) -> None:
        self.session.rollback()


class AlarmRepository(PoolRepository[Alarms, AlarmParticipant]):
    pool_type = PoolType.ALARM
    model = Alarms

    @classmethod
    def _time_column(cls) -> InstrumentedAttribute[int]:
        return Alarms.wakeup_time

    @classmethod
    def _onchain_id_column(cls) -> InstrumentedAttribute[str | None]:
        return Alarms.alarm_id

    def _to_participant(self, row: Alarms, address: str) -> AlarmParticipant:
        return AlarmParticipant(
            record_id=row.id,
            address=address,
            stake_amount=row.stake_amount,
            alarm_id=row.alarm_id,
            wakeup_time=row.wakeup_time,
            snooze_count=row.snooze_count,
        )


class FocusLockRepository(PoolRepository[FocusLocks, FocusParticipant]):
    pool_type = PoolType.FOCUS
    model = FocusLocks

    @classmethod
    def _time_column(cls) -> InstrumentedAttribute[int]:
        return FocusLocks.start_time

    @classmethod
    def _onchain_id_column(cls) -> InstrumentedAttribute[str | None]:
        return FocusLocks.session_id

    def _to_participant(self, row: FocusLocks, address: str) -> FocusParticipant:
        return FocusParticipant(
            record_id=row.id,
            address=address,
            stake_amount=row.stake_amount,
            session_id=row.session_id,
            start_time=row.start_time,
            duration=row.duration,
            completed=row.completed,
        )


REPOSITORIES: dict[PoolType, type[PoolRepository]] = {
    PoolType.ALARM: AlarmRepository,
    PoolType.FOCUS: FocusLockRepository,
}
