"""Per-pool processing: compute, commit on-chain, then persist claims.

One run walks CHECK_TIMING -> FETCH -> VALIDATE -> COMPUTE -> COMMIT ->
PUBLISH -> SIGN_AND_PERSIST. Claim material is written only after the
merkle root is confirmed on the ledger and read back unchanged; any ledger
failure ends the run before storage is touched.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import Any, ClassVar, Generic, TypeVar

import structlog

from db.enums import ExecutionStatus, PoolType, ProcessingOutcome
from poolpayout.services._helpers import iso_from_timestamp
from poolpayout.services.calculator import (
    PoolTotals,
    aggregate_rewards_by_address,
    pool_totals,
    proportional_shares,
    validate_participants,
    weighted_shares,
)
from poolpayout.services.errors import (
    LedgerError,
    LedgerTimeoutError,
    NotConfiguredError,
    PoolProcessingError,
    ValidationError,
)
from poolpayout.services.ledger_client import (
    GET_POOL_INFO_ENTRYPOINT,
    SET_MERKLE_ROOT_ENTRYPOINT,
    LedgerCall,
    LedgerClient,
)
from poolpayout.services.merkle import alarm_leaf_hash, build_merkle_tree, focus_leaf_hash
from poolpayout.services.numeric import normalize_hex, normalize_u64, split_u256, to_int
from poolpayout.services.pools import PoolKey
from poolpayout.services.schemas.contracts import Configured, ContractConfig, NotConfigured
from poolpayout.services.schemas.participants import (
    AlarmParticipant,
    FocusParticipant,
    focus_identity_key,
)
from poolpayout.services.schemas.results import (
    ClaimRecord,
    ClaimVoucher,
    MerkleCommitment,
    MerkleLeaf,
    PoolSummary,
    ProcessingResult,
    RewardShare,
)
from poolpayout.services.signer import OutcomeSigner, calculate_expiry
from poolpayout.services.storage import PoolRepository

logger = structlog.get_logger(__name__)

DEFAULT_CONFIRMATION_TIMEOUT: float = 300.0

Clock = Callable[[], float]

ParticipantT = TypeVar("ParticipantT", AlarmParticipant, FocusParticipant)


class PoolProcessor(ABC, Generic[ParticipantT]):
    """Runs one pool of a given type end to end."""

    pool_type: ClassVar[PoolType]

    def __init__(
        self,
        repository: PoolRepository[Any, ParticipantT],
        ledger: LedgerClient,
        contract: ContractConfig,
        chain_id: str,
        confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
        clock: Clock = time.time,
    ) -> None:
        self.repository: PoolRepository[Any, ParticipantT] = repository
        self.ledger: LedgerClient = ledger
        self.contract: ContractConfig = contract
        self.chain_id: str = chain_id
        self.confirmation_timeout: float = confirmation_timeout
        self.clock: Clock = clock

    # ------------------------------------------------------------------
    # Pool-type specifics
    # ------------------------------------------------------------------

    @abstractmethod
    def compute_shares(self, participants: Sequence[ParticipantT], net_pool: int) -> list[RewardShare]: ...

    @abstractmethod
    def rewards_by_key(self, shares: Sequence[RewardShare]) -> dict[str, int]: ...

    @abstractmethod
    def leaf_hash(self, participant: ParticipantT, reward: int) -> int: ...

    @abstractmethod
    def sign(self, signer: OutcomeSigner, participant: ParticipantT, expiry: int) -> ClaimVoucher: ...

    def validate(self, participants: Sequence[ParticipantT]) -> None:
        validate_participants(participants)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def process_pool(self, key: PoolKey, force: bool = False) -> ProcessingResult:
        log = logger.bind(pool_type=self.pool_type.value, day=key.day, period=key.period)

        if isinstance(self.contract, NotConfigured):
            raise NotConfiguredError(
                f"{self.pool_type.value} pool is not configured: {self.contract.reason}"
            )
        contract: Configured = self.contract
        signer: OutcomeSigner = OutcomeSigner(contract, self.chain_id)

        now: int = int(self.clock())
        ready_at: int = key.ready_time()
        if now < ready_at and not force:
            remaining: int = ready_at - now
            log.info("Pool not ready yet", remaining_seconds=remaining)
            return ProcessingResult(
                outcome=ProcessingOutcome.SKIPPED_TOO_EARLY,
                pool_key=key,
                message=(
                    f"Pool {key} is not ready: {remaining}s remaining "
                    f"(ready at {iso_from_timestamp(ready_at)})"
                ),
                remaining_seconds=remaining,
            )

        log.info("Processing pool", forced=force and now < ready_at)
        try:
            return await self._run(key, contract, signer, now, log)
        except PoolProcessingError as exc:
            self.repository.rollback()
            log.error("Pool processing failed", error_type=type(exc).__name__, error=str(exc))
            raise
        except Exception:
            self.repository.rollback()
            raise

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _run(
        self,
        key: PoolKey,
        contract: Configured,
        signer: OutcomeSigner,
        now: int,
        log: structlog.stdlib.BoundLogger,
    ) -> ProcessingResult:
        participants: list[ParticipantT] = self.repository.fetch_participants(key)
        if not participants:
            self.repository.rollback()
            log.info("No participants in pool")
            return ProcessingResult(
                outcome=ProcessingOutcome.SKIPPED_EMPTY,
                pool_key=key,
                message=f"No {self.pool_type.value} records in pool {key}",
            )

        self.validate(participants)
        # Release the read transaction before the ledger round-trip.
        self.repository.rollback()

        totals: PoolTotals = pool_totals(participants)
        shares: list[RewardShare] = self.compute_shares(participants, totals.net_reward_pool)
        log.info(
            "Computed rewards",
            participants=len(participants),
            winners=len(shares),
            total_slashed=str(totals.total_slashed),
            protocol_fee=str(totals.protocol_fee),
        )

        rewards: dict[str, int] = self.rewards_by_key(shares)
        commitment: MerkleCommitment = self.build_commitment(participants, rewards)

        tx_hash, outcome = await self.publish(key, contract, commitment.root, totals)

        expiry: int = calculate_expiry(now)
        written: int = self.persist(participants, rewards, commitment, signer, expiry, now)

        summary = PoolSummary(
            pool_type=self.pool_type,
            day=key.day,
            period=key.period,
            merkle_root=commitment.root,
            total_slashed_amount=totals.total_slashed,
            new_rewards=totals.net_reward_pool,
            protocol_fees=totals.protocol_fee,
            transaction_hash=tx_hash,
            total_users=len(participants),
            winners=len(shares),
            claims_written=written,
            processed_at=iso_from_timestamp(now),
        )
        log.info(
            "Pool processed",
            outcome=outcome.value,
            tx_hash=tx_hash,
            total_users=summary.total_users,
            winners=summary.winners,
        )
        return ProcessingResult(
            outcome=outcome, pool_key=key, pool_summary=summary, transaction_hash=tx_hash
        )

    def build_commitment(
        self, participants: Sequence[ParticipantT], rewards: dict[str, int]
    ) -> MerkleCommitment:
        """One leaf per identity key; non-winners get a zero-reward leaf."""
        leaves: dict[str, MerkleLeaf] = {}
        for p in participants:
            if p.identity_key in leaves:
                continue
            reward: int = rewards.get(p.identity_key, 0)
            leaves[p.identity_key] = MerkleLeaf(identity_key=p.identity_key, hash=self.leaf_hash(p, reward))
        return build_merkle_tree(list(leaves.values()))

    async def publish(
        self, key: PoolKey, contract: Configured, root: str, totals: PoolTotals
    ) -> tuple[str | None, ProcessingOutcome]:
        """Set the merkle root on-chain and verify it. Raises LedgerError on any failure."""
        try:
            on_chain: int = await self._read_root(key, contract)
            if on_chain == to_int(root):
                logger.info(
                    "Merkle root already on-chain, skipping submission",
                    day=key.day,
                    period=key.period,
                    root=root,
                )
                return None, ProcessingOutcome.ALREADY_PUBLISHED
            if on_chain != 0:
                raise LedgerError(
                    f"Pool {key} already holds a different root on-chain: {hex(on_chain)} != {root}"
                )

            new_low, new_high = split_u256(totals.net_reward_pool)
            fee_low, fee_high = split_u256(totals.protocol_fee)
            call = LedgerCall(
                contract_address=contract.contract_address,
                entrypoint=SET_MERKLE_ROOT_ENTRYPOINT,
                calldata=[key.day, key.period, to_int(root), new_low, new_high, fee_low, fee_high],
            )
            nonce: int = await self.ledger.get_nonce()
            tx_hash: str = await self.ledger.submit(call, nonce)
            logger.info("Waiting for transaction confirmation", tx_hash=tx_hash)

            try:
                status: ExecutionStatus = await asyncio.wait_for(
                    self.ledger.wait_for_confirmation(tx_hash), timeout=self.confirmation_timeout
                )
            except TimeoutError as exc:
                raise LedgerTimeoutError(
                    f"Transaction {tx_hash} not confirmed within {self.confirmation_timeout}s"
                ) from exc
            if status is not ExecutionStatus.SUCCEEDED:
                raise LedgerError(f"Transaction {tx_hash} failed with status {status.value}")

            confirmed: int = await self._read_root(key, contract)
            if normalize_hex(confirmed) != normalize_hex(root):
                raise LedgerError(
                    f"Merkle root verification failed: on-chain {hex(confirmed)}, expected {root}"
                )
        except LedgerError:
            raise
        except Exception as exc:
            raise LedgerError(f"Ledger interaction failed: {exc}") from exc

        logger.info("Merkle root set and verified", tx_hash=tx_hash, root=root)
        return tx_hash, ProcessingOutcome.SUCCESS

    def persist(
        self,
        participants: Sequence[ParticipantT],
        rewards: dict[str, int],
        commitment: MerkleCommitment,
        signer: OutcomeSigner,
        expiry: int,
        now: int,
    ) -> int:
        """Sign every participant and write claim data in one transaction."""
        processed_at: str = iso_from_timestamp(now)
        try:
            existing: set[str] = self.repository.existing_claim_record_ids(p.record_id for p in participants)
            records: list[ClaimRecord] = []
            for p in participants:
                voucher: ClaimVoucher = self.sign(signer, p, expiry)
                self.repository.update_participant(p.record_id, claim_ready=True, has_claimed=False)
                if p.record_id in existing:
                    continue
                records.append(
                    ClaimRecord(
                        record_id=p.record_id,
                        signature_r=voucher.signature_r,
                        signature_s=voucher.signature_s,
                        message_hash=voucher.message_hash,
                        reward_amount=rewards.get(p.identity_key, 0),
                        merkle_proof=commitment.proofs.get(p.identity_key, []),
                        expiry_time=expiry,
                        processed_at=processed_at,
                    )
                )
            written: int = self.repository.insert_claim_records(records)
            self.repository.commit()
        except Exception:
            self.repository.rollback()
            raise
        logger.info("Stored claim data", written=written, already_present=len(existing))
        return written

    async def _read_root(self, key: PoolKey, contract: Configured) -> int:
        info: list[int] = await self.ledger.read(
            contract.contract_address, GET_POOL_INFO_ENTRYPOINT, [key.day, key.period]
        )
        return to_int(info[0]) if info else 0


class AlarmPoolProcessor(PoolProcessor[AlarmParticipant]):
    """Binary outcome: snooze-free alarms split the pool by stake, one leaf per address."""

    pool_type = PoolType.ALARM

    def compute_shares(self, participants: Sequence[AlarmParticipant], net_pool: int) -> list[RewardShare]:
        return proportional_shares(participants, net_pool)

    def rewards_by_key(self, shares: Sequence[RewardShare]) -> dict[str, int]:
        return aggregate_rewards_by_address(shares)

    def leaf_hash(self, participant: AlarmParticipant, reward: int) -> int:
        return alarm_leaf_hash(participant.address, reward)

    def sign(self, signer: OutcomeSigner, participant: AlarmParticipant, expiry: int) -> ClaimVoucher:
        return signer.sign_alarm(participant, expiry)


class FocusPoolProcessor(PoolProcessor[FocusParticipant]):
    """Weighted outcome: completed locks split the pool by stake x duration, one leaf per lock."""

    pool_type = PoolType.FOCUS

    def validate(self, participants: Sequence[FocusParticipant]) -> None:
        super().validate(participants)
        keys: list[str] = [p.identity_key for p in participants]
        duplicates: set[str] = {k for k in keys if keys.count(k) > 1}
        if duplicates:
            raise ValidationError(f"Duplicate focus sessions in pool: {sorted(duplicates)}")

    def compute_shares(self, participants: Sequence[FocusParticipant], net_pool: int) -> list[RewardShare]:
        return weighted_shares(participants, net_pool)

    def rewards_by_key(self, shares: Sequence[RewardShare]) -> dict[str, int]:
        rewards: dict[str, int] = {}
        for share in shares:
            if share.session_id is None:
                raise ValidationError(f"Focus reward for {share.address} carries no session id")
            rewards[focus_identity_key(share.address, share.session_id)] = share.amount
        return rewards

    def leaf_hash(self, participant: FocusParticipant, reward: int) -> int:
        return focus_leaf_hash(participant.address, normalize_u64(participant.session_id), reward)

    def sign(self, signer: OutcomeSigner, participant: FocusParticipant, expiry: int) -> ClaimVoucher:
        return signer.sign_focus(participant, expiry)


PROCESSORS: dict[PoolType, type[PoolProcessor]] = {
    PoolType.ALARM: AlarmPoolProcessor,
    PoolType.FOCUS: FocusPoolProcessor,
}
