"""Shared exception hierarchy for pool payout services."""


class PoolPayoutError(Exception):
    """Base exception for the payout engine."""


# ── Pre-flight ────────────────────────────────────────────────────────────────


class ConfigurationError(PoolPayoutError):
    """Required configuration is missing or malformed. Halts the process."""


# ── Per-pool ──────────────────────────────────────────────────────────────────


class PoolProcessingError(PoolPayoutError):
    """A pool run failed. Fatal for that pool only."""


class ValidationError(PoolProcessingError):
    """Participant data failed validation before any external mutation."""


class NotConfiguredError(PoolProcessingError):
    """The pool type has no contract address or verifier key."""


class StorageError(PoolProcessingError):
    """Fetching or persisting pool records failed."""


class LedgerError(PoolProcessingError):
    """Ledger call failed, did not succeed, or the on-chain root does not match."""


class LedgerTimeoutError(LedgerError):
    """Transaction confirmation did not arrive within the configured bound."""
