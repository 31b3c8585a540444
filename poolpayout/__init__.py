"""Staked pool payout engine: rewards, merkle commitments and claim vouchers."""

__version__ = "0.1.0"
