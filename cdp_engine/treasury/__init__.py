"""Treasury Pool — custody collateral, debit_pool и surplus_pool."""

from .cdp_treasury import CDPTreasury, TreasuryPools

__all__ = [
    "CDPTreasury",
    "TreasuryPools",
]
