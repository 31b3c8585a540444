"""Claim vouchers: SNIP-12 style typed-data hashes signed on the STARK curve.

message_hash = H("StarkNet Message", domain_hash, user, struct_hash), where H
is Poseidon over the listed felts. The domain binds the chain id so a voucher
signed for one network does not verify on another.
"""

import time

import structlog
from poseidon_py.poseidon_hash import poseidon_hash_many
from starknet_py.cairo.felt import encode_shortstring
from starknet_py.hash.selector import get_selector_from_name
from starknet_py.hash.utils import message_signature, private_to_stark_key

from db.enums import PoolType
from poolpayout.services.errors import NotConfiguredError
from poolpayout.services.numeric import normalize_u64, to_hex_string, to_int
from poolpayout.services.schemas.contracts import ContractConfig, NotConfigured
from poolpayout.services.schemas.participants import AlarmParticipant, FocusParticipant
from poolpayout.services.schemas.results import ClaimVoucher

logger = structlog.get_logger(__name__)

CLAIM_VALIDITY_SECONDS: int = 48 * 60 * 60

APP_NAME: str = "EverydayApp"
APP_VERSION: str = "1"
DOMAIN_REVISION: int = 1
MESSAGE_PREFIX: int = encode_shortstring("StarkNet Message")

DOMAIN_TYPE_HASH: int = get_selector_from_name(
    '"StarknetDomain"("name":"shortstring","version":"shortstring",'
    '"chainId":"shortstring","revision":"shortstring")'
)
ALARM_CLAIM_TYPE_HASH: int = 0x18E6ECE967E47A0A2514D06BC44DC82365B0C4DC7B7B3CDF90DC12ACA6F139F
FOCUS_CLAIM_TYPE_HASH: int = get_selector_from_name(
    '"FocusClaimRequest"("user":"ContractAddress","session_id":"u64",'
    '"duration":"u64","completed":"bool","expiry":"u64")'
)


def chain_id_felt(chain_id: str) -> int:
    """SN_SEPOLIA / SN_MAIN as short strings; 0x values as raw felts."""
    if chain_id.lower().startswith("0x"):
        return int(chain_id, 16)
    return encode_shortstring(chain_id)


def calculate_expiry(now: int | None = None) -> int:
    return (int(time.time()) if now is None else now) + CLAIM_VALIDITY_SECONDS


def domain_hash(chain_id: str) -> int:
    return poseidon_hash_many(
        [
            DOMAIN_TYPE_HASH,
            encode_shortstring(APP_NAME),
            encode_shortstring(APP_VERSION),
            chain_id_felt(chain_id),
            DOMAIN_REVISION,
        ]
    )


def alarm_struct_hash(
    user: str, alarm_id: int, wakeup_time: int, snooze_count: int, expiry: int
) -> int:
    return poseidon_hash_many(
        [ALARM_CLAIM_TYPE_HASH, to_int(user), alarm_id, wakeup_time, snooze_count, expiry]
    )


def focus_struct_hash(
    user: str, session_id: int, duration: int, completed: bool, expiry: int
) -> int:
    return poseidon_hash_many(
        [FOCUS_CLAIM_TYPE_HASH, to_int(user), session_id, duration, int(completed), expiry]
    )


def message_hash(chain_id: str, user: str, struct_hash: int) -> int:
    return poseidon_hash_many([MESSAGE_PREFIX, domain_hash(chain_id), to_int(user), struct_hash])


def sign_message(msg_hash: int, private_key: str) -> ClaimVoucher:
    key: int = to_int(private_key if private_key.lower().startswith("0x") else "0x" + private_key)
    r, s = message_signature(msg_hash=msg_hash, priv_key=key)
    return ClaimVoucher(
        message_hash=to_hex_string(msg_hash),
        signature_r=to_hex_string(r),
        signature_s=to_hex_string(s),
        public_key=to_hex_string(private_to_stark_key(key)),
    )


class OutcomeSigner:
    """Signs claim vouchers with a pool type's verifier key."""

    def __init__(self, contract: ContractConfig, chain_id: str) -> None:
        if isinstance(contract, NotConfigured):
            raise NotConfiguredError(
                f"{contract.pool_type.value} pool is not configured: {contract.reason}"
            )
        self.pool_type: PoolType = contract.pool_type
        self.chain_id: str = chain_id
        self._private_key: str = contract.verifier_private_key

    def sign_alarm(self, participant: AlarmParticipant, expiry: int) -> ClaimVoucher:
        struct: int = alarm_struct_hash(
            participant.address,
            normalize_u64(participant.alarm_id),
            participant.wakeup_time,
            participant.snooze_count,
            expiry,
        )
        logger.debug(
            "Signing alarm claim",
            user=participant.address,
            alarm_id=participant.alarm_id,
            snooze_count=participant.snooze_count,
        )
        return sign_message(message_hash(self.chain_id, participant.address, struct), self._private_key)

    def sign_focus(self, participant: FocusParticipant, expiry: int) -> ClaimVoucher:
        struct: int = focus_struct_hash(
            participant.address,
            normalize_u64(participant.session_id),
            participant.duration,
            participant.completed,
            expiry,
        )
        logger.debug(
            "Signing focus claim",
            user=participant.address,
            session_id=participant.session_id,
            completed=participant.completed,
        )
        return sign_message(message_hash(self.chain_id, participant.address, struct), self._private_key)
