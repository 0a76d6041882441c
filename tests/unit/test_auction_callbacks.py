"""
Тесты для завершения и отмены collateral auction

Coverage:
- платёж победителя: списание долга, излишек в surplus_pool
- частичный лот: остаток возвращается refund_recipient
- аукцион без победителя
- идемпотентность повторной доставки callback
- неизвестные аукционы
"""

import pytest

from cdp_engine.core.errors import InvalidAmount, UnknownAuction
from tests.unit.constants import ALICE, BOB, DAVE, DOT, STABLE, XBTC


@pytest.fixture
def pending(liquidatable):
    """alice → auction 0 (lot 10, target 60000), bob → exchange."""
    liquidatable.engine.liquidate(XBTC, ALICE)
    liquidatable.engine.liquidate(XBTC, BOB)
    liquidatable.currencies.deposit(STABLE, DAVE, 60_000)
    return liquidatable


# =============================================================================
# ЗАВЕРШЕНИЕ
# =============================================================================


class TestAuctionEnded:
    def test_full_payment(self, pending):
        rt = pending

        settled = rt.auction_house.end_collateral_auction(0, DAVE, 60_000)

        assert settled.kind == "CollateralAuctionSettled"
        assert settled.payment == 60_000
        assert settled.debit_written_off == 50_000
        assert settled.surplus == 10_000

        assert rt.treasury.get_debit_pool() == 5_000
        assert rt.treasury.get_surplus_pool() == 19_871
        assert rt.currencies.free_balance(STABLE, rt.treasury.account) == 19_871
        assert rt.treasury.get_total_collaterals(XBTC) == 0
        assert rt.currencies.free_balance(XBTC, DAVE) == 10
        assert rt.currencies.free_balance(STABLE, DAVE) == 0
        assert rt.auction_house.get_auction(0) is None
        assert 0 not in rt.state.collateral_auction_debts

    def test_partial_lot_refunds_owner(self, pending):
        rt = pending

        rt.auction_house.end_collateral_auction(0, DAVE, 60_000, collateral_to_winner=8)

        assert rt.currencies.free_balance(XBTC, DAVE) == 8
        assert rt.currencies.free_balance(XBTC, ALICE) == 992
        assert rt.treasury.get_total_collaterals(XBTC) == 0

    def test_no_winner_keeps_lot(self, pending):
        rt = pending

        settled = rt.auction_house.end_collateral_auction(0, None, 0)

        assert settled.payment == 0
        assert settled.debit_written_off == 0
        assert rt.treasury.get_debit_pool() == 55_000
        assert rt.treasury.get_total_collaterals(XBTC) == 10
        assert rt.auction_house.get_total_collateral_in_auction(XBTC) == 0

    def test_low_payment_partially_writes_off(self, pending):
        rt = pending

        settled = rt.auction_house.end_collateral_auction(0, DAVE, 30_000)

        assert settled.debit_written_off == 30_000
        assert settled.surplus == 0
        assert rt.treasury.get_debit_pool() == 25_000

    def test_redelivery_returns_first_result(self, pending):
        rt = pending
        first = rt.auction_house.end_collateral_auction(0, DAVE, 60_000)
        events_before = len(rt.state.events)

        again = rt.engine.on_auction_ended(0, XBTC, 60_000)

        assert again == first
        assert len(rt.state.events) == events_before
        assert rt.treasury.get_debit_pool() == 5_000

    def test_payment_without_winner(self, pending, capture_state):
        before = capture_state()
        with pytest.raises(InvalidAmount):
            pending.auction_house.end_collateral_auction(0, None, 100)
        assert capture_state() == before

    def test_lot_split_above_lot(self, pending, capture_state):
        before = capture_state()
        with pytest.raises(InvalidAmount):
            pending.auction_house.end_collateral_auction(0, DAVE, 60_000, collateral_to_winner=11)
        assert capture_state() == before


class TestUnknownAuctions:
    def test_unknown_id(self, pending):
        with pytest.raises(UnknownAuction):
            pending.engine.on_auction_ended(99, XBTC, 0)
        with pytest.raises(UnknownAuction):
            pending.auction_house.end_collateral_auction(99, DAVE, 0)

    def test_type_mismatch(self, pending, capture_state):
        before = capture_state()
        with pytest.raises(UnknownAuction):
            pending.engine.on_auction_ended(0, DOT, 0)
        assert capture_state() == before


# =============================================================================
# ОТМЕНА
# =============================================================================


class TestAuctionCancelled:
    def test_cancel_keeps_lot_and_debt(self, pending):
        rt = pending

        rt.auction_house.cancel_auction(0)

        assert rt.auction_house.get_auction(0) is None
        assert rt.treasury.get_total_collaterals(XBTC) == 10
        assert rt.treasury.free_collateral(XBTC) == 10
        assert rt.treasury.get_debit_pool() == 55_000

        event = rt.state.events_of("CollateralAuctionCancelled")[-1]
        assert (event.auction_id, event.collateral_type, event.amount) == (0, XBTC, 10)

    def test_cancel_redelivery(self, pending):
        rt = pending
        rt.auction_house.cancel_auction(0)
        first = rt.state.auction_settlements[0]

        assert rt.engine.on_auction_cancelled(0) == first

    def test_completion_after_cancel_is_ignored(self, pending):
        rt = pending
        rt.auction_house.cancel_auction(0)

        result = rt.engine.on_auction_ended(0, XBTC, 60_000)

        assert result.kind == "CollateralAuctionCancelled"
        assert rt.treasury.get_debit_pool() == 55_000
