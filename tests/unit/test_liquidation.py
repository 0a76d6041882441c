"""
Тесты для ликвидации unsafe позиций

Coverage:
- auction path: мелкий пул, target = debt + penalty
- exchange path: выручка свапа в surplus_pool
- отказы без мутаций: AlreadySafe, нет цены, shutdown
- поиск unsafe позиций
"""

import pytest

from cdp_engine.core.domain.events import LiquidationStrategy, PendingAuction, SettledImmediately
from cdp_engine.core.domain.position import Position
from cdp_engine.core.domain.risk_params import NewValue
from cdp_engine.core.errors import (
    AlreadySafe,
    InvalidCollateralType,
    InvalidFeedPrice,
    MustBeforeShutdown,
)
from cdp_engine.core.math.fixed_point import Price, Ratio
from cdp_engine.state import AuctionKind
from tests.unit.constants import ALICE, BOB, DOT, STABLE, XBTC


class TestUnsafeDetection:
    def test_safe_before_ratio_raise(self, liquidatable, root):
        engine = liquidatable.engine
        engine.set_collateral_params(root, XBTC, liquidation_ratio=NewValue(Ratio.checked_from_rational(3, 2)))

        assert not engine.is_cdp_unsafe(XBTC, ALICE)
        assert engine.find_unsafe_positions(XBTC) == []

    def test_find_unsafe_positions(self, liquidatable):
        assert liquidatable.engine.find_unsafe_positions(XBTC) == [ALICE, BOB]

    def test_find_without_price(self, liquidatable):
        liquidatable.oracle.set_price(XBTC, None)
        assert liquidatable.engine.find_unsafe_positions(XBTC) == []

    def test_disabled_liquidation_ratio(self, liquidatable, root):
        """liquidation_ratio = None отключает ликвидацию."""
        engine = liquidatable.engine
        engine.set_collateral_params(root, XBTC, liquidation_ratio=NewValue(None))
        assert not engine.is_cdp_unsafe(XBTC, ALICE)


class TestAuctionPath:
    def test_shallow_pool_goes_to_auction(self, liquidatable):
        """Slippage 10 / 110 > 5% → auction, target 50000 × 1.2."""
        rt = liquidatable

        outcome = rt.engine.liquidate(XBTC, ALICE)

        assert outcome == PendingAuction(auction_id=0)
        assert outcome.strategy == LiquidationStrategy.AUCTION

        auction = rt.auction_house.get_auction(0)
        assert auction.kind == AuctionKind.COLLATERAL
        assert auction.amount == 10
        assert auction.target == 60_000
        assert auction.refund_recipient == ALICE

        assert rt.engine.ledger.positions(XBTC, ALICE) == Position()
        assert rt.treasury.get_debit_pool() == 50_000
        assert rt.treasury.get_total_collaterals(XBTC) == 11
        assert rt.auction_house.get_total_collateral_in_auction(XBTC) == 10
        assert rt.state.collateral_auction_debts[0].debit_value == 50_000

    def test_event(self, liquidatable):
        liquidatable.engine.liquidate(XBTC, ALICE)

        event = liquidatable.state.events_of("LiquidateUnsafeCDP")[-1]
        assert event.owner == ALICE
        assert event.collateral_seized == 10
        assert event.debit_value_owed == 50_000
        assert event.strategy == LiquidationStrategy.AUCTION

    def test_without_penalty(self, liquidatable, root):
        liquidatable.engine.set_collateral_params(root, XBTC, liquidation_penalty=NewValue(None))

        liquidatable.engine.liquidate(XBTC, ALICE)

        assert liquidatable.auction_house.get_auction(0).target == 50_000

    def test_empty_pool_goes_to_auction(self, liquidatable, root):
        """DOT/AUSD пул пуст → auction даже для маленькой позиции."""
        rt = liquidatable
        rt.oracle.set_price(DOT, Price.from_integer(100))
        rt.engine.set_collateral_params(
            root,
            DOT,
            liquidation_ratio=NewValue(Ratio.checked_from_rational(3, 2)),
            maximum_total_debit_value=NewValue(1_000_000),
        )
        rt.engine.adjust_position(ALICE, DOT, 10, 5_000)
        rt.engine.set_collateral_params(root, DOT, liquidation_ratio=NewValue(Ratio.from_integer(3)))

        outcome = rt.engine.liquidate(DOT, ALICE)

        assert isinstance(outcome, PendingAuction)


class TestExchangePath:
    def test_deep_enough_pool_swaps(self, liquidatable):
        """1 XBTC → 9871 AUSD ≥ 5000 долга."""
        rt = liquidatable

        outcome = rt.engine.liquidate(XBTC, BOB)

        assert outcome == SettledImmediately(proceeds=9871)
        assert outcome.strategy == LiquidationStrategy.EXCHANGE

        assert rt.engine.ledger.positions(XBTC, BOB) == Position()
        assert rt.treasury.get_debit_pool() == 5_000
        assert rt.treasury.get_surplus_pool() == 9871
        assert rt.treasury.get_total_collaterals(XBTC) == 10
        assert rt.exchange.get_liquidity_pool(XBTC, STABLE) == (101, 990_129)
        assert rt.currencies.free_balance(STABLE, rt.treasury.account) == 9871

    def test_both_positions(self, liquidatable):
        rt = liquidatable
        rt.engine.liquidate(XBTC, ALICE)
        rt.engine.liquidate(XBTC, BOB)

        assert rt.treasury.get_debit_pool() == 55_000
        assert rt.treasury.get_surplus_pool() == 9871
        assert rt.treasury.get_total_collaterals(XBTC) == 10
        assert rt.engine.ledger.owners(XBTC) == []
        assert rt.engine.ledger.total_positions(XBTC) == Position()

    def test_offset_on_finalize(self, liquidatable):
        rt = liquidatable
        rt.engine.liquidate(XBTC, BOB)

        assert rt.engine.on_finalize() == 5_000
        assert rt.treasury.get_debit_pool() == 0
        assert rt.treasury.get_surplus_pool() == 4871


class TestRejections:
    def test_already_safe(self, liquidatable, root, capture_state):
        liquidatable.engine.set_collateral_params(
            root, XBTC, liquidation_ratio=NewValue(Ratio.checked_from_rational(3, 2))
        )
        before = capture_state()
        with pytest.raises(AlreadySafe):
            liquidatable.engine.liquidate(XBTC, ALICE)
        assert capture_state() == before

    def test_no_position_is_safe(self, liquidatable):
        with pytest.raises(AlreadySafe):
            liquidatable.engine.liquidate(XBTC, "nobody")

    def test_no_price(self, liquidatable, capture_state):
        liquidatable.oracle.set_price(XBTC, None)
        before = capture_state()
        with pytest.raises(InvalidFeedPrice):
            liquidatable.engine.liquidate(XBTC, ALICE)
        assert capture_state() == before

    def test_invalid_collateral_type(self, liquidatable):
        with pytest.raises(InvalidCollateralType):
            liquidatable.engine.liquidate(STABLE, ALICE)

    def test_after_shutdown(self, liquidatable, root, capture_state):
        liquidatable.shutdown.emergency_shutdown(root)
        before = capture_state()
        with pytest.raises(MustBeforeShutdown):
            liquidatable.engine.liquidate(XBTC, ALICE)
        assert capture_state() == before
