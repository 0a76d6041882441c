"""
Тесты для Liquidation Strategy Selection

Проверяет порядок проверок:
1. Пустой пул → auction
2. Slippage выше границы → auction
3. Выход свапа меньше долга → auction
4. Иначе → exchange
"""

import pytest

from cdp_engine.core.domain.events import LiquidationStrategy
from cdp_engine.core.math.fixed_point import Rate, Ratio
from cdp_engine.engine.strategy import LiquidationStrategySelector, select_liquidation_strategy

MAX_SLIPPAGE = Ratio.checked_from_rational(5, 100)
FEE = Rate.checked_from_rational(3, 1000)


@pytest.fixture
def selector():
    return LiquidationStrategySelector(max_slippage=MAX_SLIPPAGE, exchange_fee=FEE)


class TestSelector:
    @pytest.mark.parametrize(
        "supply_pool,target_pool,seized,owed,reason",
        [
            (0, 0, 10, 100, "pool_empty"),
            (100, 0, 10, 100, "pool_empty"),
            (100, 1_000_000, 10, 50_000, "slippage_exceeded"),
            (1000, 1_000_000, 10, 50_000, "insufficient_proceeds"),
        ],
    )
    def test_auction_reasons(self, selector, supply_pool, target_pool, seized, owed, reason):
        decision = selector.evaluate(supply_pool, target_pool, seized, owed)

        assert decision.strategy == LiquidationStrategy.AUCTION
        assert not decision.use_exchange
        assert decision.reason == reason

    def test_insufficient_proceeds_reports_quote(self, selector):
        decision = selector.evaluate(1000, 1_000_000, 10, 50_000)
        assert decision.expected_proceeds == 9871
        assert decision.slippage == Ratio.checked_from_rational(10, 1010)

    def test_proceeds_boundary(self, selector):
        """Выход 98715: ровно покрывает долг → exchange, на 1 больше → auction."""
        covered = selector.evaluate(1000, 10_000_000, 10, 98_715)
        assert covered.strategy == LiquidationStrategy.EXCHANGE
        assert covered.reason == "exchange_viable"
        assert covered.expected_proceeds == 98_715

        short = selector.evaluate(1000, 10_000_000, 10, 98_716)
        assert short.strategy == LiquidationStrategy.AUCTION
        assert short.reason == "insufficient_proceeds"

    def test_slippage_boundary_is_inclusive(self, selector):
        """10 / (190 + 10) = 5% — не больше границы."""
        decision = selector.evaluate(190, 10_000_000, 10, 1)
        assert decision.slippage == MAX_SLIPPAGE
        assert decision.use_exchange

    def test_decision_records_inputs(self, selector):
        decision = selector.evaluate(100, 1_000_000, 10, 50_000)
        assert (decision.supply_pool, decision.target_pool) == (100, 1_000_000)
        assert (decision.seized_collateral, decision.debit_value_owed) == (10, 50_000)
        assert decision.expected_proceeds == 0


class TestDeterminism:
    def test_same_input_same_decision(self, selector):
        args = (1000, 10_000_000, 10, 98_715)
        assert selector.evaluate(*args) == selector.evaluate(*args)

    def test_function_matches_selector(self, selector):
        args = (1000, 1_000_000, 10, 50_000)
        assert select_liquidation_strategy(*args, MAX_SLIPPAGE, FEE) == selector.evaluate(*args)
