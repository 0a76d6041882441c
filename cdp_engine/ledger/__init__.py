"""Position Ledger — учёт collateral и debit по (collateral_type, owner)."""

from .loans import PositionLedger, RiskManager

__all__ = [
    "PositionLedger",
    "RiskManager",
]
