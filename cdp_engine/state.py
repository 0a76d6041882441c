"""
World State — явный handle состояния engine

Всё изменяемое состояние системы (балансы, позиции, пулы treasury и AMM,
параметры риска, записи аукционов, фаза shutdown, журнал событий) живёт в
одном объекте WorldState, который передаётся каждому компоненту по ссылке.

ТРАНЗАКЦИИ:
- transaction() — единственная область мутаций
- писатели сериализуются re-entrant lock
- любое исключение восстанавливает снимок состояния (all-or-nothing)
- вложенная транзакция присоединяется к внешней
"""

import copy
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field, fields
from enum import Enum
from threading import RLock
from typing import Dict, Iterator, List, Optional, Tuple

from cdp_engine.core.domain.currency import AccountId, CurrencyId, TradingPair
from cdp_engine.core.domain.events import EngineEvent
from cdp_engine.core.domain.position import Position
from cdp_engine.core.domain.risk_params import RiskParameters
from cdp_engine.core.math.fixed_point import ExchangeRate, Price, Rate

logger = logging.getLogger(__name__)


class ShutdownPhase(str, Enum):
    """Фаза emergency shutdown."""

    RUNNING = "RUNNING"
    SHUTDOWN = "SHUTDOWN"
    REFUND_OPEN = "REFUND_OPEN"


class AuctionKind(str, Enum):
    COLLATERAL = "COLLATERAL"
    SURPLUS = "SURPLUS"
    DEBIT = "DEBIT"


@dataclass(frozen=True)
class AuctionRecord:
    """Открытый аукцион в auction house."""

    auction_id: int
    kind: AuctionKind
    amount: int
    target: int = 0
    collateral_type: Optional[CurrencyId] = None
    refund_recipient: Optional[AccountId] = None


@dataclass(frozen=True)
class CollateralAuctionDebt:
    """
    Метаданные treasury для collateral auction.

    debit_value — долг, который аукцион должен покрыть (без penalty).
    """

    collateral_type: CurrencyId
    amount: int
    debit_value: int
    target: int
    refund_recipient: AccountId


@dataclass
class WorldState:
    """
    Состояние engine.

    Поля сгруппированы по владельцам; менять их можно только внутри
    transaction().
    """

    # Fungible ledger: (account, currency) → balance
    balances: Dict[Tuple[AccountId, CurrencyId], int] = field(default_factory=dict)
    total_issuance: Dict[CurrencyId, int] = field(default_factory=dict)

    # Position Ledger
    positions: Dict[CurrencyId, Dict[AccountId, Position]] = field(default_factory=dict)
    total_positions: Dict[CurrencyId, Position] = field(default_factory=dict)

    # Risk Engine
    risk_params: Dict[CurrencyId, RiskParameters] = field(default_factory=dict)
    debit_exchange_rates: Dict[CurrencyId, ExchangeRate] = field(default_factory=dict)
    global_stability_fee: Rate = field(default_factory=Rate.zero)

    # Treasury Pool
    total_collaterals: Dict[CurrencyId, int] = field(default_factory=dict)
    debit_pool: int = 0
    surplus_pool: int = 0
    collateral_auction_debts: Dict[int, CollateralAuctionDebt] = field(default_factory=dict)
    auction_settlements: Dict[int, EngineEvent] = field(default_factory=dict)

    # Liquidity Exchange
    liquidity_pools: Dict[TradingPair, Tuple[int, int]] = field(default_factory=dict)
    total_shares: Dict[TradingPair, int] = field(default_factory=dict)
    shares: Dict[Tuple[TradingPair, AccountId], int] = field(default_factory=dict)

    # Oracle
    prices: Dict[CurrencyId, Price] = field(default_factory=dict)
    locked_prices: Dict[CurrencyId, Price] = field(default_factory=dict)

    # Auction House
    auctions: Dict[int, AuctionRecord] = field(default_factory=dict)
    next_auction_id: int = 0

    # Emergency Shutdown
    shutdown_phase: ShutdownPhase = ShutdownPhase.RUNNING

    events: List[EngineEvent] = field(default_factory=list)

    _lock: RLock = field(default_factory=RLock, repr=False, compare=False)
    _depth: int = field(default=0, repr=False, compare=False)

    # -------------------------------------------------------------------------
    # Транзакции
    # -------------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator["WorldState"]:
        """
        Атомарная область мутаций.

        При исключении состояние восстанавливается из снимка, исключение
        пробрасывается дальше без изменений.
        events в снимок не входит: журнал только растёт, откат обрезает его
        до длины на входе.
        """
        with self._lock:
            if self._depth > 0:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            snapshot = self._snapshot()
            events_mark = len(self.events)
            self._depth = 1
            try:
                yield self
            except BaseException as e:
                self._restore(snapshot)
                del self.events[events_mark:]
                logger.debug("Transaction rolled back: %s", type(e).__name__)
                raise
            finally:
                self._depth = 0

    def in_transaction(self) -> bool:
        return self._depth > 0

    def _snapshot(self) -> Dict[str, object]:
        return {
            f.name: copy.deepcopy(getattr(self, f.name))
            for f in fields(self)
            if not f.name.startswith("_") and f.name != "events"
        }

    def _restore(self, snapshot: Dict[str, object]) -> None:
        for name, value in snapshot.items():
            setattr(self, name, value)

    # -------------------------------------------------------------------------
    # События
    # -------------------------------------------------------------------------

    def deposit_event(self, event: EngineEvent) -> None:
        self.events.append(event)

    def events_of(self, kind: str) -> List[EngineEvent]:
        return [e for e in self.events if getattr(e, "kind", None) == kind]

    def is_shutdown(self) -> bool:
        return self.shutdown_phase != ShutdownPhase.RUNNING
