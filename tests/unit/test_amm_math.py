"""
Тесты для AMM Math

Проверяет:
1. Выход/вход свапа (constant-product с fee)
2. Slippage
3. Приращение долей и вывод ликвидности
4. Инвариант reserve_in × reserve_out
"""

import pytest

from cdp_engine.core.math.amm import (
    calculate_liquidity_removal,
    calculate_share_increment,
    get_exchange_slippage,
    get_supply_amount,
    get_target_amount,
)
from cdp_engine.core.math.fixed_point import Rate, Ratio

FEE = Rate.checked_from_rational(3, 1000)


class TestTargetAmount:
    def test_without_fee(self):
        assert get_target_amount(100, 1_000_000, 10, Rate.zero()) == 90909

    def test_with_fee(self):
        """10 XBTC в пул (10000, 10_000_000) при fee 0.3% → 9960 AUSD."""
        assert get_target_amount(10_000, 10_000_000, 10, FEE) == 9960

    @pytest.mark.parametrize(
        "supply_pool,target_pool,supply",
        [(0, 1000, 10), (1000, 0, 10), (1000, 1000, 0)],
    )
    def test_empty_inputs(self, supply_pool, target_pool, supply):
        assert get_target_amount(supply_pool, target_pool, supply, FEE) == 0


class TestSupplyAmount:
    def test_exact_target(self):
        assert get_supply_amount(10_000, 10_000_000, 9960, FEE) == 10

    def test_supply_covers_target(self):
        supply = get_supply_amount(10_000, 10_000_000, 5000, FEE)
        assert get_target_amount(10_000, 10_000_000, supply, FEE) >= 5000

    def test_target_above_pool(self):
        assert get_supply_amount(10_000, 10_000_000, 10_000_000, FEE) == 0

    def test_full_fee(self):
        assert get_supply_amount(10_000, 10_000_000, 100, Rate.one()) == 0


class TestSlippage:
    def test_boundary(self):
        """10 / (190 + 10) = 5%."""
        assert get_exchange_slippage(190, 10) == Ratio.checked_from_rational(1, 20)

    def test_empty_pool(self):
        assert get_exchange_slippage(0, 10) is None


class TestShares:
    def test_base_binding_increment(self):
        assert calculate_share_increment(10_000, 10_000_000, 10_000_000, 1, 1000) == (1000, 1, 1000)

    def test_other_binding_increment(self):
        """Вход дороже цены пула: other вносится целиком, base по цене пула."""
        share, other, base = calculate_share_increment(10_002, 10_002_000, 10_001_999, 1, 1001)
        assert (share, other, base) == (999, 1, 1000)

    def test_truncated_increment_is_zero(self):
        share, other, _ = calculate_share_increment(10_001, 10_001_000, 10_001_000, 1, 999)
        assert share == 0
        assert other == 0

    def test_liquidity_removal(self):
        assert calculate_liquidity_removal(1_000_000, 10_000_000, 10_000, 10_000_000) == (1000, 1_000_000)
        assert calculate_liquidity_removal(0, 10_000_000, 10_000, 10_000_000) == (0, 0)


class TestInvariant:
    @pytest.mark.parametrize("supply", [1, 10, 1000, 50_000])
    def test_swap_increases_product(self, supply):
        supply_pool, target_pool = 10_000, 10_000_000
        target = get_target_amount(supply_pool, target_pool, supply, FEE)
        assert (supply_pool + supply) * (target_pool - target) > supply_pool * target_pool

    def test_swap_without_fee_never_decreases_product(self):
        supply_pool, target_pool = 100, 1_000_000
        target = get_target_amount(supply_pool, target_pool, 10, Rate.zero())
        assert (supply_pool + 10) * (target_pool - target) >= supply_pool * target_pool
