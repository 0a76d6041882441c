"""Общие fixtures для unit-тестов CDP engine.

Runtime собирается поверх пустого WorldState; балансы задаются напрямую
через fungible ledger. Суммы — сырые целые единицы.
"""

import copy

import pytest

from cdp_engine.core.config import EngineConfig
from cdp_engine.core.domain.risk_params import NewValue
from cdp_engine.core.math.fixed_point import Price, Rate, Ratio
from cdp_engine.runtime import build_runtime
from tests.unit.constants import ALICE, BOB, CAROL, DOT, NATIVE, STABLE, XBTC


@pytest.fixture
def config():
    """Конфигурация: AUSD stable, XBTC и DOT collateral, пары с AUSD."""
    return EngineConfig(
        stable_currency_id=STABLE,
        native_currency_id=NATIVE,
        collateral_currency_ids=[XBTC, DOT],
        enabled_trading_pairs=[[XBTC, STABLE], [DOT, STABLE]],
    )


@pytest.fixture
def runtime(config):
    """Runtime с collateral балансами alice/bob (без stable)."""
    rt = build_runtime(config)
    rt.currencies.deposit(XBTC, ALICE, 1000)
    rt.currencies.deposit(XBTC, BOB, 1000)
    rt.currencies.deposit(DOT, ALICE, 1000)
    return rt


@pytest.fixture
def root(runtime):
    return runtime.root()


@pytest.fixture
def liquidatable(runtime, root):
    """
    Две unsafe позиции XBTC при цене 10000 и пуле XBTC/AUSD (100, 1_000_000).

    alice: 10 XBTC, debt value 50_000 (пул слишком мелкий → auction)
    bob: 1 XBTC, debt value 5_000 (свап покрывает долг → exchange)

    liquidation_ratio поднят до 3 после открытия позиций.
    """
    engine = runtime.engine
    runtime.oracle.set_price(XBTC, Price.from_integer(10_000))
    engine.set_collateral_params(
        root,
        XBTC,
        liquidation_ratio=NewValue(Ratio.checked_from_rational(3, 2)),
        liquidation_penalty=NewValue(Rate.checked_from_rational(1, 5)),
        required_collateral_ratio=NewValue(None),
        maximum_total_debit_value=NewValue(1_000_000),
    )

    runtime.currencies.deposit(XBTC, CAROL, 100)
    runtime.currencies.deposit(STABLE, CAROL, 1_000_000)
    runtime.exchange.add_liquidity(CAROL, XBTC, STABLE, 100, 1_000_000)

    engine.adjust_position(ALICE, XBTC, 10, 500_000)
    engine.adjust_position(BOB, XBTC, 1, 50_000)
    engine.set_collateral_params(root, XBTC, liquidation_ratio=NewValue(Ratio.from_integer(3)))
    return runtime


@pytest.fixture
def capture_state(runtime):
    """Снимок наблюдаемого состояния для проверок "без мутаций"."""

    def capture():
        state = runtime.state
        return copy.deepcopy(
            {
                "balances": state.balances,
                "total_issuance": state.total_issuance,
                "positions": state.positions,
                "total_positions": state.total_positions,
                "risk_params": state.risk_params,
                "debit_exchange_rates": state.debit_exchange_rates,
                "total_collaterals": state.total_collaterals,
                "debit_pool": state.debit_pool,
                "surplus_pool": state.surplus_pool,
                "liquidity_pools": state.liquidity_pools,
                "auctions": state.auctions,
                "collateral_auction_debts": state.collateral_auction_debts,
                "events": state.events,
            }
        )

    return capture
