"""Tier-gated feature access and usage accounting."""

__version__ = "0.1.0"
