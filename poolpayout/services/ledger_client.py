"""Starknet ledger client: nonce, submit, confirm, read.

The orchestrator composes these primitives; retry policy is left to the
underlying RPC provider.
"""

from dataclasses import dataclass, field
from typing import Protocol

import structlog
from starknet_py.hash.selector import get_selector_from_name
from starknet_py.net.account.account import Account
from starknet_py.net.client_models import Call
from starknet_py.net.full_node_client import FullNodeClient
from starknet_py.net.signer.stark_curve_signer import KeyPair
from starknet_py.transaction_errors import TransactionRevertedError

from config import StarknetSettings
from db.enums import ExecutionStatus
from poolpayout.services.errors import LedgerError
from poolpayout.services.numeric import to_hex_string, to_int
from poolpayout.services.signer import chain_id_felt

logger = structlog.get_logger(__name__)

SET_MERKLE_ROOT_ENTRYPOINT: str = "set_merkle_root_for_pool"
GET_POOL_INFO_ENTRYPOINT: str = "get_pool_info"


@dataclass(frozen=True)
class LedgerCall:
    contract_address: str
    entrypoint: str
    calldata: list[int] = field(default_factory=list)


class LedgerClient(Protocol):
    async def get_nonce(self) -> int: ...

    async def submit(self, call: LedgerCall, nonce: int) -> str: ...

    async def wait_for_confirmation(self, tx_hash: str) -> ExecutionStatus: ...

    async def read(self, contract_address: str, entrypoint: str, args: list[int]) -> list[int]: ...


class StarknetLedgerClient:
    """LedgerClient over a Starknet JSON-RPC node and a single deployer account."""

    def __init__(
        self,
        rpc_url: str,
        account_address: str,
        private_key: str,
        chain_id: str,
        poll_interval: float = 5.0,
    ) -> None:
        self.rpc_url: str = rpc_url
        self.poll_interval: float = poll_interval
        self._client: FullNodeClient = FullNodeClient(node_url=rpc_url)
        self._account: Account = Account(
            client=self._client,
            address=to_int(account_address),
            key_pair=KeyPair.from_private_key(to_int(private_key)),
            chain=chain_id_felt(chain_id),
        )
        logger.info("Deployer account initialized", address=account_address, rpc_url=rpc_url[:50])

    @classmethod
    def from_settings(cls, settings: StarknetSettings) -> "StarknetLedgerClient":
        return cls(
            rpc_url=settings.rpc_url,
            account_address=settings.deployer_address,
            private_key=settings.deployer_private_key,
            chain_id=settings.chain_id,
            poll_interval=settings.confirmation_poll_interval,
        )

    async def get_nonce(self) -> int:
        try:
            return await self._account.get_nonce()
        except Exception as exc:
            raise LedgerError(f"Failed to fetch account nonce: {exc}") from exc

    async def submit(self, call: LedgerCall, nonce: int) -> str:
        starknet_call: Call = Call(
            to_addr=to_int(call.contract_address),
            selector=get_selector_from_name(call.entrypoint),
            calldata=list(call.calldata),
        )
        try:
            response = await self._account.execute_v3(
                calls=[starknet_call], nonce=nonce, auto_estimate=True
            )
        except Exception as exc:
            raise LedgerError(f"{call.entrypoint} submission failed: {exc}") from exc
        tx_hash: str = to_hex_string(response.transaction_hash)
        logger.info("Transaction submitted", entrypoint=call.entrypoint, tx_hash=tx_hash, nonce=nonce)
        return tx_hash

    async def wait_for_confirmation(self, tx_hash: str) -> ExecutionStatus:
        try:
            receipt = await self._client.wait_for_tx(
                tx_hash=to_int(tx_hash), check_interval=self.poll_interval
            )
        except TransactionRevertedError as exc:
            logger.warning("Transaction reverted", tx_hash=tx_hash, reason=str(exc))
            return ExecutionStatus.REVERTED
        except Exception as exc:
            raise LedgerError(f"Waiting for {tx_hash} failed: {exc}") from exc

        raw_status = getattr(receipt, "execution_status", None)
        if raw_status is None:
            return ExecutionStatus.SUCCEEDED
        try:
            return ExecutionStatus(getattr(raw_status, "value", raw_status))
        except ValueError:
            return ExecutionStatus.REJECTED

    async def read(self, contract_address: str, entrypoint: str, args: list[int]) -> list[int]:
        call: Call = Call(
            to_addr=to_int(contract_address),
            selector=get_selector_from_name(entrypoint),
            calldata=list(args),
        )
        try:
            return list(await self._client.call_contract(call=call, block_number="latest"))
        except Exception as exc:
            raise LedgerError(f"Reading {entrypoint} failed: {exc}") from exc
