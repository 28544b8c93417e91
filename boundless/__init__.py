"""Boundless: multichain liquidity orchestration (squeeze, pull, refuel, zap)."""

__version__ = "0.1.0"
