"""
Core math modules для CDP engine

Точная арифметика с фиксированной точкой и формулы constant-product AMM.
"""

# Fixed point
from cdp_engine.core.math.fixed_point import (
    # Константы
    ACCURACY,
    DECIMALS,
    I128_MAX,
    I128_MIN,
    U128_MAX,
    # Типы
    ExchangeRate,
    FixedU128,
    Price,
    Rate,
    Ratio,
    # Guards
    balance_from_amount_abs,
    checked_add_balance,
    checked_sub_balance,
    mul_int_or_overflow,
    validate_amount,
    validate_balance,
)

# AMM
from cdp_engine.core.math.amm import (
    calculate_liquidity_removal,
    calculate_share_increment,
    get_exchange_slippage,
    get_supply_amount,
    get_target_amount,
)

__all__ = [
    # Fixed point — Константы
    "ACCURACY",
    "DECIMALS",
    "I128_MAX",
    "I128_MIN",
    "U128_MAX",
    # Fixed point — Типы
    "ExchangeRate",
    "FixedU128",
    "Price",
    "Rate",
    "Ratio",
    # Fixed point — Guards
    "balance_from_amount_abs",
    "checked_add_balance",
    "checked_sub_balance",
    "mul_int_or_overflow",
    "validate_amount",
    "validate_balance",
    # AMM
    "calculate_liquidity_removal",
    "calculate_share_increment",
    "get_exchange_slippage",
    "get_supply_amount",
    "get_target_amount",
]
