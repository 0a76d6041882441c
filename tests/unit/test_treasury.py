"""
Тесты для CDP Treasury

Coverage:
- custody collateral: total_collaterals == баланс аккаунта treasury
- debit / surplus пулы и взаимозачёт
- surplus / debit аукционы (privileged)
- доля stable в total issuance
"""

import pytest

from cdp_engine.core.errors import (
    BadOrigin,
    CollateralNotEnough,
    DebitPoolNotEnough,
    InsufficientBalance,
    SurplusPoolNotEnough,
)
from cdp_engine.core.math.fixed_point import Ratio
from cdp_engine.state import AuctionKind
from tests.unit.constants import ALICE, BOB, STABLE, XBTC


@pytest.fixture
def treasury(runtime):
    return runtime.treasury


class TestCustody:
    def test_deposit_and_withdraw(self, treasury, runtime):
        treasury.deposit_collateral(ALICE, XBTC, 100)
        assert treasury.get_total_collaterals(XBTC) == 100
        assert runtime.currencies.free_balance(XBTC, treasury.account) == 100

        treasury.withdraw_collateral(BOB, XBTC, 40)
        assert treasury.get_total_collaterals(XBTC) == 60
        assert runtime.currencies.free_balance(XBTC, BOB) == 1040

    def test_withdraw_more_than_custody(self, treasury, capture_state):
        treasury.deposit_collateral(ALICE, XBTC, 10)
        before = capture_state()
        with pytest.raises(CollateralNotEnough):
            treasury.withdraw_collateral(ALICE, XBTC, 11)
        assert capture_state() == before

    def test_deposit_without_balance(self, treasury, capture_state):
        before = capture_state()
        with pytest.raises(InsufficientBalance):
            treasury.deposit_collateral(ALICE, XBTC, 1001)
        assert capture_state() == before

    def test_free_collateral_excludes_auctions(self, treasury):
        treasury.deposit_collateral(ALICE, XBTC, 100)
        treasury.create_collateral_auction(XBTC, 30, 500, ALICE)

        assert treasury.free_collateral(XBTC) == 70
        with pytest.raises(CollateralNotEnough):
            treasury.create_collateral_auction(XBTC, 71, 500, ALICE)
        with pytest.raises(CollateralNotEnough):
            treasury.swap_collateral_to_stable(XBTC, 71, 0)


class TestPools:
    def test_surplus_is_minted_to_treasury(self, treasury, runtime):
        treasury.on_system_surplus(300)

        assert treasury.get_surplus_pool() == 300
        assert runtime.currencies.free_balance(STABLE, treasury.account) == 300
        assert runtime.currencies.total_issuance(STABLE) == 300

    def test_offset(self, treasury, runtime):
        treasury.on_system_surplus(300)
        treasury.on_system_debit(500)

        assert treasury.offset_surplus_and_debit() == 300
        assert treasury.get_surplus_pool() == 0
        assert treasury.get_debit_pool() == 200
        assert runtime.currencies.total_issuance(STABLE) == 0
        assert runtime.state.events_of("SurplusDebitOffset")[-1].amount == 300

    def test_offset_nothing(self, treasury, runtime):
        treasury.on_system_debit(500)
        assert treasury.offset_surplus_and_debit() == 0
        assert runtime.state.events_of("SurplusDebitOffset") == []

    def test_snapshot(self, treasury):
        treasury.deposit_collateral(ALICE, XBTC, 5)
        treasury.on_system_debit(7)

        pools = treasury.snapshot()

        assert pools.total_collaterals == {XBTC: 5}
        assert pools.debit_pool == 7
        assert pools.surplus_pool == 0

    def test_debit_proportion(self, treasury, runtime):
        assert treasury.get_debit_proportion(10) == Ratio.zero()

        runtime.currencies.deposit(STABLE, ALICE, 200)
        assert treasury.get_debit_proportion(50) == Ratio.checked_from_rational(1, 4)


class TestSurplusAndDebitAuctions:
    def test_surplus_auction(self, treasury, runtime, root):
        treasury.on_system_surplus(100)

        auction_id = treasury.create_surplus_auction(root, 60)

        record = runtime.auction_house.get_auction(auction_id)
        assert record.kind == AuctionKind.SURPLUS
        assert record.amount == 60
        with pytest.raises(SurplusPoolNotEnough):
            treasury.create_surplus_auction(root, 41)

    def test_debit_auction(self, treasury, runtime, root):
        treasury.on_system_debit(100)

        auction_id = treasury.create_debit_auction(root, 100, 5)

        record = runtime.auction_house.get_auction(auction_id)
        assert record.kind == AuctionKind.DEBIT
        assert (record.amount, record.target) == (100, 5)
        assert runtime.auction_house.get_total_debit_in_auction() == 100
        with pytest.raises(DebitPoolNotEnough):
            treasury.create_debit_auction(root, 1, 1)

    def test_requires_root(self, treasury):
        treasury.on_system_surplus(100)
        treasury.on_system_debit(100)
        with pytest.raises(BadOrigin):
            treasury.create_surplus_auction(None, 1)
        with pytest.raises(BadOrigin):
            treasury.create_debit_auction(None, 1, 1)
