"""Emergency Shutdown Coordinator — глобальная заморозка и финальный settlement.

Фазы: RUNNING → SHUTDOWN → REFUND_OPEN (необратимо).

- RUNNING: нормальная работа
- SHUTDOWN: цены collateral зафиксированы; увеличение долга и ликвидации
  запрещены, settle() открыт
- REFUND_OPEN: держатели stable обменивают его на пропорциональную долю
  collateral из custody treasury
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Protocol

from cdp_engine.auth import Authority
from cdp_engine.core.config import EngineConfig
from cdp_engine.core.domain.currency import AccountId, CurrencyId
from cdp_engine.core.domain.events import CollateralRefunded, ShutdownPhaseChanged
from cdp_engine.core.domain.position import Position
from cdp_engine.core.errors import (
    AlreadyShutdown,
    CanNotRefund,
    ExistPotentialSurplus,
    ExistUnhandledDebit,
    InvalidAmount,
    InvariantViolation,
    MustAfterShutdown,
)
from cdp_engine.core.math.fixed_point import validate_balance
from cdp_engine.state import ShutdownPhase, WorldState
from cdp_engine.support.auction import AuctionManager
from cdp_engine.support.currencies import MultiCurrency
from cdp_engine.support.oracle import LockablePriceSource
from cdp_engine.treasury.cdp_treasury import CDPTreasury

logger = logging.getLogger(__name__)


class ShutdownFlag(Protocol):
    def is_shutdown(self) -> bool: ...


@dataclass(frozen=True)
class ShutdownTransitionResult:
    """Результат перехода фазы shutdown."""

    new_phase: ShutdownPhase
    previous_phase: ShutdownPhase

    # Диагностика
    transition_occurred: bool
    transition_reason: str

    # Для отладки
    details: str


class EmergencyShutdownCoordinator:
    """Emergency Shutdown: фазовый автомат поверх WorldState.shutdown_phase.

    Проверки open_collateral_refund (для каждого collateral type):
    - нет collateral в аукционах и нет surplus в аукционах → иначе ExistPotentialSurplus
    - нет непогашенного debit в позициях → иначе ExistUnhandledDebit
    """

    def __init__(
        self,
        state: WorldState,
        config: EngineConfig,
        authority: Authority,
        currencies: MultiCurrency,
        oracle: LockablePriceSource,
        auction_manager: AuctionManager,
        treasury: CDPTreasury,
    ):
        self._state = state
        self._config = config
        self._authority = authority
        self._currencies = currencies
        self._oracle = oracle
        self._auctions = auction_manager
        self._treasury = treasury

    @property
    def phase(self) -> ShutdownPhase:
        return self._state.shutdown_phase

    def is_shutdown(self) -> bool:
        return self._state.shutdown_phase != ShutdownPhase.RUNNING

    def can_refund(self) -> bool:
        return self._state.shutdown_phase == ShutdownPhase.REFUND_OPEN

    def _transition(self, new_phase: ShutdownPhase, reason: str, details: str) -> ShutdownTransitionResult:
        previous = self._state.shutdown_phase
        self._state.shutdown_phase = new_phase
        self._state.deposit_event(ShutdownPhaseChanged(from_phase=previous.value, to_phase=new_phase.value))
        return ShutdownTransitionResult(
            new_phase=new_phase,
            previous_phase=previous,
            transition_occurred=True,
            transition_reason=reason,
            details=details,
        )

    def emergency_shutdown(self, origin: Any) -> ShutdownTransitionResult:
        """RUNNING → SHUTDOWN; фиксирует цены всех collateral types.

        Raises:
            BadOrigin, AlreadyShutdown
        """
        self._authority.ensure_root(origin)
        if self.is_shutdown():
            raise AlreadyShutdown(f"shutdown phase is {self.phase.value}")

        with self._state.transaction():
            for collateral_type in self._config.collateral_currency_ids:
                self._oracle.lock_price(collateral_type)
            result = self._transition(
                ShutdownPhase.SHUTDOWN,
                "emergency_shutdown",
                f"Prices locked for {list(self._config.collateral_currency_ids)}",
            )

        logger.info("Emergency shutdown: %s → %s", result.previous_phase.value, result.new_phase.value)
        return result

    def open_collateral_refund(self, origin: Any) -> ShutdownTransitionResult:
        """SHUTDOWN → REFUND_OPEN.

        Raises:
            BadOrigin, MustAfterShutdown, ExistPotentialSurplus, ExistUnhandledDebit
        """
        self._authority.ensure_root(origin)
        if self.phase != ShutdownPhase.SHUTDOWN:
            raise MustAfterShutdown(f"refund can be opened only from SHUTDOWN, phase is {self.phase.value}")

        if self._auctions.get_total_surplus_in_auction() > 0:
            raise ExistPotentialSurplus("surplus auctions still open")
        for collateral_type in self._config.collateral_currency_ids:
            if self._auctions.get_total_collateral_in_auction(collateral_type) > 0:
                raise ExistPotentialSurplus(f"{collateral_type}: collateral auctions still open")
            total = self._state.total_positions.get(collateral_type, Position())
            if total.debit > 0:
                raise ExistUnhandledDebit(f"{collateral_type}: {total.debit} debit not settled")

        with self._state.transaction():
            result = self._transition(
                ShutdownPhase.REFUND_OPEN,
                "open_collateral_refund",
                "All positions settled, no auctions pending",
            )

        logger.info("Collateral refund opened")
        return result

    def _refundable_collateral(self, collateral_type: CurrencyId) -> int:
        """Collateral в custody, не принадлежащий ни одной позиции."""
        custody = self._treasury.get_total_collaterals(collateral_type)
        owned = self._state.total_positions.get(collateral_type, Position()).collateral
        if owned > custody:
            raise InvariantViolation(
                f"{collateral_type}: position collateral {owned} exceeds custody {custody}"
            )
        return custody - owned

    def refund_collaterals(self, who: AccountId, stable_amount: int) -> Dict[CurrencyId, int]:
        """Обмен stable на пропорциональную долю collateral treasury.

        refund[type] = stable_amount / total_issuance(stable) × собственный collateral treasury,
        где собственный = total_collaterals[type] − total_positions[type].collateral.
        Collateral живых позиций (без долга) остаётся за владельцами.

        Raises:
            CanNotRefund, InvalidAmount, InsufficientBalance
        """
        validate_balance(stable_amount, "stable_amount")
        if not self.can_refund():
            raise CanNotRefund(f"refund is not open, phase is {self.phase.value}")
        if stable_amount == 0:
            raise InvalidAmount("refund amount must be positive")

        refund_ratio = self._treasury.get_debit_proportion(stable_amount)
        refunds: Dict[CurrencyId, int] = {}
        with self._state.transaction():
            self._currencies.withdraw(self._config.stable_currency_id, who, stable_amount)
            for collateral_type in self._config.collateral_currency_ids:
                amount = refund_ratio.saturating_mul_int(self._refundable_collateral(collateral_type))
                if amount > 0:
                    self._treasury.withdraw_collateral(who, collateral_type, amount)
                    refunds[collateral_type] = amount
            self._state.deposit_event(
                CollateralRefunded(who=who, stable_amount=stable_amount, refunds=refunds)
            )

        logger.info("Refunded %s for %d stable: %s", who, stable_amount, refunds)
        return refunds
