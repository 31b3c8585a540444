"""Per-pool-type contract configuration, as a configured/not-configured variant."""

from dataclasses import dataclass

from db.enums import PoolType


@dataclass(frozen=True)
class Configured:
    pool_type: PoolType
    contract_address: str
    verifier_private_key: str


@dataclass(frozen=True)
class NotConfigured:
    pool_type: PoolType
    reason: str


ContractConfig = Configured | NotConfigured
