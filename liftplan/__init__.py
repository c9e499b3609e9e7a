"""Liftplan - deterministic strength program generation and adaptation."""

__version__ = "0.1.0"
