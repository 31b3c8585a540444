"""Fixed-point integer helpers for values crossing into felts and calldata.

All amounts are plain Python ints in the token's smallest unit; nothing here
touches floating point.
"""

MASK_128: int = (1 << 128) - 1
MASK_64: int = (1 << 64) - 1
U256_LIMIT: int = 1 << 256
# Starknet field prime; addresses and other felts must be below it.
FELT_PRIME: int = 2**251 + 17 * 2**192 + 1


def split_u256(value: int) -> tuple[int, int]:
    """Split a u256 into its (low, high) 128-bit halves."""
    return value & MASK_128, value >> 128


def normalize_u64(value: int | str) -> int:
    """Truncate an identifier to 64 bits."""
    return to_int(value) & MASK_64


def to_hex_string(value: int | str) -> str:
    """Render as lowercase 0x-hex. Hex strings pass through lowercased."""
    if isinstance(value, str) and value.startswith(("0x", "0X")):
        return value.lower()
    return hex(to_int(value))


def to_int(value: int | str) -> int:
    """Parse an int, decimal string or 0x-hex string."""
    if isinstance(value, int):
        return value
    text: str = value.strip()
    if text.lower().startswith("0x"):
        return int(text, 16)
    return int(text)


def normalize_hex(value: int | str) -> str:
    """Canonical hex for equality checks: no leading zeros, lowercase."""
    return hex(to_int(value))
