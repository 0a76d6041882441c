"""Liquidity Exchange — constant-product AMM."""

from .dex import LiquidityExchange

__all__ = [
    "LiquidityExchange",
]
