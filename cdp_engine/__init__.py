"""
CDP engine — детерминированный risk engine для collateralized debt positions.

Компоненты (от листьев к корню):
- core.math: fixed point типы (Price, Rate, Ratio, ExchangeRate) и AMM формулы
- ledger: Position Ledger (collateral и debit по (collateral_type, owner))
- treasury: Treasury Pool (total_collaterals, debit_pool, surplus_pool)
- exchange: Liquidity Exchange (constant-product AMM)
- engine: Risk Engine (параметры риска, ликвидация, settlement)
- shutdown: Emergency Shutdown coordinator
"""

__version__ = "0.3.0"
