"""
AMM Math — чистые формулы constant-product пула

Модуль содержит только математические функции без мутаций состояния.
Все вычисления целочисленные; fee задаётся как Rate (доля от supply).

ФОРМУЛЫ:
    supply_with_fee = supply × (1 - fee)
    target_out = supply_with_fee × R_out / (R_in + supply_with_fee)
    supply_in  = R_in × target / ((R_out - target) × (1 - fee)) + 1
    slippage   = supply / (R_in + supply)

ИНВАРИАНТ:
    swap не уменьшает R_in × R_out; при fee > 0 произведение строго растёт.
"""

from typing import Optional, Tuple

from cdp_engine.core.math.fixed_point import (
    ACCURACY,
    U128_MAX,
    Price,
    Rate,
    Ratio,
)


def get_target_amount(supply_pool: int, target_pool: int, supply_amount: int, fee: Rate) -> int:
    """
    Выход свапа при точном входе.

    Args:
        supply_pool: резерв входного актива
        target_pool: резерв выходного актива
        supply_amount: вход
        fee: комиссия за hop

    Returns:
        Выходное количество (0 если пул пуст или вход нулевой)

    Examples:
        >>> get_target_amount(100, 1_000_000, 10, Rate.zero())
        90909
    """
    if supply_amount == 0 or supply_pool == 0 or target_pool == 0:
        return 0

    supply_amount_with_fee = supply_amount * (ACCURACY - fee.inner)
    numerator = supply_amount_with_fee * target_pool
    denominator = supply_pool * ACCURACY + supply_amount_with_fee
    return numerator // denominator


def get_supply_amount(supply_pool: int, target_pool: int, target_amount: int, fee: Rate) -> int:
    """
    Необходимый вход для получения точного выхода.

    Returns:
        Входное количество или 0, если цель недостижима
        (target >= target_pool, пустой пул или fee = 100%)
    """
    if target_amount == 0 or supply_pool == 0 or target_pool == 0:
        return 0
    if target_amount >= target_pool:
        return 0

    fee_complement = ACCURACY - fee.inner
    if fee_complement == 0:
        return 0

    numerator = supply_pool * target_amount * ACCURACY
    denominator = (target_pool - target_amount) * fee_complement
    supply_amount = numerator // denominator + 1
    if supply_amount > U128_MAX:
        return 0
    return supply_amount


def get_exchange_slippage(supply_pool: int, supply_amount: int) -> Optional[Ratio]:
    """
    Доля глубины пула, потребляемая свапом: supply / (R_in + supply).

    Returns:
        Ratio или None, если пул пуст
    """
    if supply_pool == 0:
        return None
    return Ratio.checked_from_rational(supply_amount, supply_pool + supply_amount)


def calculate_share_increment(
    other_pool: int,
    base_pool: int,
    total_shares: int,
    max_other_amount: int,
    max_base_amount: int,
) -> Tuple[int, int, int]:
    """
    Приращение долей при добавлении ликвидности в существующий пул.

    Пул описывается как (other, base). Связывающая сторона вносится целиком,
    вторая сторона — по текущей цене пула (с усечением). Доли начисляются
    пропорционально меньшему относительному вкладу.

    Returns:
        (share_increment, other_increment, base_increment); нулевые значения
        означают невалидное приращение
    """
    other_base_price = Price.checked_from_rational(base_pool, other_pool)
    input_price = Price.checked_from_rational(max_base_amount, max_other_amount)
    if other_base_price is None or input_price is None:
        return 0, 0, 0

    if input_price <= other_base_price:
        # base — связывающая сторона
        base_other_price = Price.checked_from_rational(other_pool, base_pool)
        if base_other_price is None:
            return 0, 0, 0
        other_amount = base_other_price.saturating_mul_int(max_base_amount)
        share_ratio = Ratio.checked_from_rational(other_amount, other_pool)
        share_increment = share_ratio.saturating_mul_int(total_shares) if share_ratio is not None else 0
        return share_increment, other_amount, max_base_amount

    base_amount = other_base_price.saturating_mul_int(max_other_amount)
    share_ratio = Ratio.checked_from_rational(base_amount, base_pool)
    share_increment = share_ratio.saturating_mul_int(total_shares) if share_ratio is not None else 0
    return share_increment, max_other_amount, base_amount


def calculate_liquidity_removal(
    share: int,
    total_shares: int,
    pool_0: int,
    pool_1: int,
) -> Tuple[int, int]:
    """
    Количества активов при сжигании долей.

    Returns:
        (amount_0, amount_1), усечённые пропорционально доле
    """
    if share == 0 or total_shares == 0:
        return 0, 0
    proportion = Ratio.checked_from_rational(share, total_shares)
    if proportion is None:
        return 0, 0
    return proportion.saturating_mul_int(pool_0), proportion.saturating_mul_int(pool_1)
