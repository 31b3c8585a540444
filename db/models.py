"""SQLAlchemy ORM models for pool participants and claim data.

Amounts are stored as decimal strings in the token's smallest unit so the
full u256 range survives every backend without precision loss.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import ForeignKey, Index, MetaData, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=convention)

    def to_dict(self) -> dict[str, Any]:
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}


def generate_uuid() -> str:
    return str(uuid4())


def utc_now() -> datetime:
    return datetime.now(UTC)


class Profiles(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(primary_key=True, default=generate_uuid)
    wallet_address: Mapped[str | None] = mapped_column(String(66))
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)


class Alarms(Base):
    __tablename__ = "alarms"

    id: Mapped[str] = mapped_column(primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False)
    alarm_id: Mapped[str | None] = mapped_column(String(20))
    wakeup_time: Mapped[int] = mapped_column(nullable=False)
    stake_amount: Mapped[str] = mapped_column(String(78), nullable=False, default="0")
    snooze_count: Mapped[int] = mapped_column(nullable=False, default=0)
    deleted: Mapped[bool] = mapped_column(nullable=False, default=False)
    claim_ready: Mapped[bool] = mapped_column(nullable=False, default=False)
    has_claimed: Mapped[bool] = mapped_column(nullable=False, default=False)

    __table_args__ = (Index("ix_alarms_wakeup_time", "wakeup_time"),)
    profile = relationship("Profiles")


class FocusLocks(Base):
    __tablename__ = "focus_locks"

    id: Mapped[str] = mapped_column(primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False)
    session_id: Mapped[str | None] = mapped_column(String(20))
    start_time: Mapped[int] = mapped_column(nullable=False)
    duration: Mapped[int] = mapped_column(nullable=False, default=0)
    stake_amount: Mapped[str] = mapped_column(String(78), nullable=False, default="0")
    completed: Mapped[bool] = mapped_column(nullable=False, default=False)
    deleted: Mapped[bool] = mapped_column(nullable=False, default=False)
    claim_ready: Mapped[bool] = mapped_column(nullable=False, default=False)
    has_claimed: Mapped[bool] = mapped_column(nullable=False, default=False)

    __table_args__ = (Index("ix_focus_locks_start_time", "start_time"),)
    profile = relationship("Profiles")


class UserClaimData(Base):
    __tablename__ = "user_claim_data"

    id: Mapped[str] = mapped_column(primary_key=True, default=generate_uuid)
    pool_type: Mapped[str] = mapped_column(nullable=False)
    record_id: Mapped[str] = mapped_column(nullable=False)
    signature_r: Mapped[str] = mapped_column(nullable=False)
    signature_s: Mapped[str] = mapped_column(nullable=False)
    message_hash: Mapped[str] = mapped_column(nullable=False)
    reward_amount: Mapped[str] = mapped_column(String(78), nullable=False)
    merkle_proof: Mapped[str] = mapped_column(nullable=False)
    expiry_time: Mapped[int] = mapped_column(nullable=False)
    processed_at: Mapped[str] = mapped_column(nullable=False)

    __table_args__ = (UniqueConstraint("pool_type", "record_id"),)
