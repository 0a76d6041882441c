"""
Runtime — сборка компонентов engine поверх одного WorldState

Порядок сборки (от листьев к корню):
state → Authority → currencies → oracle → auction house → exchange →
treasury → shutdown coordinator → engine; затем auction house
привязывается к engine (callback) и treasury (custody).
"""

import logging
from dataclasses import dataclass
from typing import Optional

from cdp_engine.auth import Authority, Capability
from cdp_engine.core.config import EngineConfig
from cdp_engine.engine.cdp_engine import CDPEngine
from cdp_engine.exchange.dex import LiquidityExchange
from cdp_engine.shutdown.coordinator import EmergencyShutdownCoordinator
from cdp_engine.state import WorldState
from cdp_engine.support.auction import InMemoryAuctionHouse
from cdp_engine.support.currencies import InMemoryCurrencies
from cdp_engine.support.oracle import InMemoryPriceSource
from cdp_engine.treasury.cdp_treasury import CDPTreasury

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineRuntime:
    """Собранный набор компонентов, разделяющих один WorldState."""

    config: EngineConfig
    state: WorldState
    authority: Authority
    currencies: InMemoryCurrencies
    oracle: InMemoryPriceSource
    auction_house: InMemoryAuctionHouse
    exchange: LiquidityExchange
    treasury: CDPTreasury
    shutdown: EmergencyShutdownCoordinator
    engine: CDPEngine

    def root(self) -> Capability:
        return self.authority.issue_root()


def build_runtime(config: EngineConfig, state: Optional[WorldState] = None) -> EngineRuntime:
    """Сборка runtime; state=None создаёт пустое состояние."""
    state = state if state is not None else WorldState()
    authority = Authority()
    currencies = InMemoryCurrencies(state)
    oracle = InMemoryPriceSource(state, config.stable_currency_id)
    auction_house = InMemoryAuctionHouse(state, currencies, config.stable_currency_id, config.treasury_account)
    exchange = LiquidityExchange(state, config, currencies)
    treasury = CDPTreasury(state, config, currencies, exchange, auction_house, authority)
    shutdown = EmergencyShutdownCoordinator(state, config, authority, currencies, oracle, auction_house, treasury)
    engine = CDPEngine(state, config, authority, oracle, exchange, treasury, shutdown)
    auction_house.bind(handler=engine, custody=treasury)

    logger.info(
        "CDP engine runtime built: stable=%s collaterals=%s pairs=%s",
        config.stable_currency_id,
        config.collateral_currency_ids,
        [str(pair) for pair in config.enabled_trading_pairs],
    )
    return EngineRuntime(
        config=config,
        state=state,
        authority=authority,
        currencies=currencies,
        oracle=oracle,
        auction_house=auction_house,
        exchange=exchange,
        treasury=treasury,
        shutdown=shutdown,
        engine=engine,
    )
