"""Solana Actions (Blinks) service."""

__version__ = "1.0.0"
