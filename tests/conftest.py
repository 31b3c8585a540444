"""Shared fixtures: in-memory SQLite DB with all tables, seeders and a fake ledger."""

import asyncio
from collections.abc import Callable, Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from db.enums import ExecutionStatus, PoolType
from db.models import Alarms, Base, FocusLocks, Profiles
from poolpayout.services.ledger_client import LedgerCall
from poolpayout.services.pools import PoolKey
from poolpayout.services.schemas.contracts import Configured

# Day 20000 AM: 1728000000 .. 1728043200, ready at 1728045000.
POOL = PoolKey(day=20000, period=0)
AFTER_READY: int = POOL.ready_time() + 60

VERIFIER_KEY = "0x1234567890abcdef1234567890abcdef"
CONTRACT_ADDRESS = "0x0457a1b2c3d4e5f60718293a4b5c6d7e8f90123456789abcdef0123456789ab"
CHAIN_ID = "SN_SEPOLIA"

WALLET_A = "0x0111"
WALLET_B = "0x0222"
WALLET_C = "0x0333"


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    eng: Engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session(engine: Engine) -> Generator[Session, None, None]:
    factory: sessionmaker[Session] = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    sess: Session = factory()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture()
def make_profile(session: Session) -> Callable[..., Profiles]:
    def _make(wallet: str | None) -> Profiles:
        profile = Profiles(wallet_address=wallet)
        session.add(profile)
        session.commit()
        return profile

    return _make


@pytest.fixture()
def make_alarm(session: Session, make_profile: Callable[..., Profiles]) -> Callable[..., Alarms]:
    profiles: dict[str | None, Profiles] = {}

    def _make(
        wallet: str | None = WALLET_A,
        stake: int | str = 100,
        snooze_count: int = 0,
        wakeup_time: int | None = None,
        alarm_id: str | None = "1",
        **kwargs: object,
    ) -> Alarms:
        if wallet not in profiles:
            profiles[wallet] = make_profile(wallet)
        alarm = Alarms(
            user_id=profiles[wallet].id,
            alarm_id=alarm_id,
            wakeup_time=wakeup_time if wakeup_time is not None else POOL.start + 3600,
            stake_amount=str(stake),
            snooze_count=snooze_count,
            **kwargs,
        )
        session.add(alarm)
        session.commit()
        return alarm

    return _make


@pytest.fixture()
def make_focus_lock(session: Session, make_profile: Callable[..., Profiles]) -> Callable[..., FocusLocks]:
    profiles: dict[str | None, Profiles] = {}

    def _make(
        wallet: str | None = WALLET_A,
        stake: int | str = 100,
        duration: int = 1800,
        completed: bool = True,
        session_id: str | None = "1",
        start_time: int | None = None,
        **kwargs: object,
    ) -> FocusLocks:
        if wallet not in profiles:
            profiles[wallet] = make_profile(wallet)
        lock = FocusLocks(
            user_id=profiles[wallet].id,
            session_id=session_id,
            start_time=start_time if start_time is not None else POOL.start + 3600,
            duration=duration,
            stake_amount=str(stake),
            completed=completed,
            **kwargs,
        )
        session.add(lock)
        session.commit()
        return lock

    return _make


def configured(pool_type: PoolType = PoolType.ALARM) -> Configured:
    return Configured(
        pool_type=pool_type,
        contract_address=CONTRACT_ADDRESS,
        verifier_private_key=VERIFIER_KEY,
    )


class FakeLedger:
    """In-memory ledger: roots keyed by (day, period)."""

    def __init__(
        self,
        fail_submit: bool = False,
        status: ExecutionStatus = ExecutionStatus.SUCCEEDED,
        stored_root: int | None = None,
        hang: bool = False,
    ) -> None:
        self.fail_submit = fail_submit
        self.status = status
        self.stored_root = stored_root
        self.hang = hang
        self.roots: dict[tuple[int, int], int] = {}
        self.submitted: list[LedgerCall] = []
        self.nonces: list[int] = []
        self.next_nonce = 7

    async def get_nonce(self) -> int:
        return self.next_nonce

    async def submit(self, call: LedgerCall, nonce: int) -> str:
        if self.fail_submit:
            raise RuntimeError("rpc unavailable")
        self.submitted.append(call)
        self.nonces.append(nonce)
        self.next_nonce += 1
        day, period, root = call.calldata[:3]
        self.roots[(day, period)] = self.stored_root if self.stored_root is not None else root
        return "0xfeed"

    async def wait_for_confirmation(self, tx_hash: str) -> ExecutionStatus:
        if self.hang:
            await asyncio.sleep(10)
        return self.status

    async def read(self, contract_address: str, entrypoint: str, args: list[int]) -> list[int]:
        return [self.roots.get((args[0], args[1]), 0), 1, 0, 0, 0]


@pytest.fixture()
def ledger() -> FakeLedger:
    return FakeLedger()
