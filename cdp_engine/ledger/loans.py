"""
Position Ledger — учёт CDP позиций

Позиция (collateral_type, owner) хранит collateral и debit. Жизненный цикл
позиции управляется только adjust_position и confiscate_collateral_and_debit.

adjust_position (all-or-nothing):
1. collateral_type должен быть зарегистрирован (InvalidCollateralType)
2. итоговые collateral и debit ≥ 0 (CollateralTooLow / DebitTooLow)
3. collateral_delta > 0: owner → custody treasury; < 0: custody → owner
4. debit_delta > 0: debt ceiling (ExceedDebitValueHardCap), mint debit × rate;
   debit_delta < 0: burn |debit| × rate (InsufficientBalance)
5. проверка валидности итоговой позиции (RiskManager.check_position_valid)
6. событие PositionUpdated, возврат PositionSummary
"""

import logging
from typing import Dict, List, Optional, Protocol

from cdp_engine.core.config import EngineConfig
from cdp_engine.core.domain.currency import AccountId, CurrencyId
from cdp_engine.core.domain.events import PositionUpdated
from cdp_engine.core.domain.position import Position, PositionSummary
from cdp_engine.core.errors import CollateralTooLow, DebitTooLow, InvalidCollateralType
from cdp_engine.core.math.fixed_point import (
    Ratio,
    balance_from_amount_abs,
    validate_amount,
    validate_balance,
)
from cdp_engine.state import WorldState
from cdp_engine.treasury.cdp_treasury import CDPTreasury

logger = logging.getLogger(__name__)


class RiskManager(Protocol):
    """Проверки риска, которые ledger делегирует Risk Engine."""

    def get_debit_value(self, collateral_type: CurrencyId, debit: int) -> int: ...

    def check_debit_cap(self, collateral_type: CurrencyId, total_debit_value: int) -> None: ...

    def check_position_valid(
        self, collateral_type: CurrencyId, collateral: int, debit: int, check_required_ratio: bool
    ) -> None: ...

    def current_collateral_ratio(
        self, collateral_type: CurrencyId, collateral: int, debit: int
    ) -> Optional[Ratio]: ...


class PositionLedger:
    """Position Ledger поверх WorldState.positions / total_positions."""

    def __init__(
        self,
        state: WorldState,
        config: EngineConfig,
        treasury: CDPTreasury,
        risk_manager: RiskManager,
    ):
        self._state = state
        self._config = config
        self._treasury = treasury
        self._risk = risk_manager

    # -------------------------------------------------------------------------
    # Запросы
    # -------------------------------------------------------------------------

    def positions(self, collateral_type: CurrencyId, owner: AccountId) -> Position:
        return self._state.positions.get(collateral_type, {}).get(owner, Position())

    def total_positions(self, collateral_type: CurrencyId) -> Position:
        return self._state.total_positions.get(collateral_type, Position())

    def owners(self, collateral_type: CurrencyId) -> List[AccountId]:
        """Владельцы позиций типа в детерминированном порядке."""
        return sorted(self._state.positions.get(collateral_type, {}))

    def summary(self, collateral_type: CurrencyId, owner: AccountId) -> PositionSummary:
        position = self.positions(collateral_type, owner)
        return PositionSummary(
            owner=owner,
            collateral_type=collateral_type,
            collateral=position.collateral,
            debit=position.debit,
            debit_value=self._risk.get_debit_value(collateral_type, position.debit),
            collateral_ratio=self._risk.current_collateral_ratio(
                collateral_type, position.collateral, position.debit
            ),
        )

    # -------------------------------------------------------------------------
    # Мутации
    # -------------------------------------------------------------------------

    def _update_loan(
        self,
        owner: AccountId,
        collateral_type: CurrencyId,
        collateral_adjustment: int,
        debit_adjustment: int,
    ) -> Position:
        position = self.positions(collateral_type, owner)
        new_collateral = position.collateral + collateral_adjustment
        new_debit = position.debit + debit_adjustment
        if new_collateral < 0:
            raise CollateralTooLow(
                f"{owner}/{collateral_type}: collateral {position.collateral} + {collateral_adjustment} < 0"
            )
        if new_debit < 0:
            raise DebitTooLow(f"{owner}/{collateral_type}: debit {position.debit} + {debit_adjustment} < 0")

        updated = Position(
            collateral=validate_balance(new_collateral, "collateral"),
            debit=validate_balance(new_debit, "debit"),
        )
        owners: Dict[AccountId, Position] = self._state.positions.setdefault(collateral_type, {})
        if updated.is_empty():
            owners.pop(owner, None)
            if not owners:
                del self._state.positions[collateral_type]
        else:
            owners[owner] = updated

        total = self.total_positions(collateral_type)
        self._state.total_positions[collateral_type] = Position(
            collateral=validate_balance(total.collateral + collateral_adjustment, "total collateral"),
            debit=validate_balance(total.debit + debit_adjustment, "total debit"),
        )
        return updated

    def adjust_position(
        self,
        owner: AccountId,
        collateral_type: CurrencyId,
        collateral_adjustment: int,
        debit_adjustment: int,
    ) -> PositionSummary:
        """
        Корректировка позиции знаковыми дельтами (i128).

        Returns:
            PositionSummary после корректировки

        Raises:
            InvalidCollateralType, CollateralTooLow, DebitTooLow,
            ExceedDebitValueHardCap, InsufficientBalance, CollateralNotEnough,
            InvalidFeedPrice, BelowRequiredCollateralRatio, BelowLiquidationRatio,
            RemainDebitValueTooSmall, ArithmeticOverflow
        """
        validate_amount(collateral_adjustment, "collateral_adjustment")
        validate_amount(debit_adjustment, "debit_adjustment")
        if not self._config.is_collateral(collateral_type):
            raise InvalidCollateralType(f"{collateral_type} is not a registered collateral")

        with self._state.transaction():
            position = self._update_loan(owner, collateral_type, collateral_adjustment, debit_adjustment)

            if collateral_adjustment > 0:
                self._treasury.deposit_collateral(owner, collateral_type, collateral_adjustment)
            elif collateral_adjustment < 0:
                self._treasury.withdraw_collateral(
                    owner, collateral_type, balance_from_amount_abs(collateral_adjustment)
                )

            if debit_adjustment > 0:
                total_debit = self.total_positions(collateral_type).debit
                self._risk.check_debit_cap(
                    collateral_type, self._risk.get_debit_value(collateral_type, total_debit)
                )
                self._treasury.issue_debit(owner, self._risk.get_debit_value(collateral_type, debit_adjustment))
            elif debit_adjustment < 0:
                self._treasury.burn_debit(
                    owner,
                    self._risk.get_debit_value(collateral_type, balance_from_amount_abs(debit_adjustment)),
                )

            self._risk.check_position_valid(
                collateral_type,
                position.collateral,
                position.debit,
                collateral_adjustment < 0 or debit_adjustment > 0,
            )

            self._state.deposit_event(
                PositionUpdated(
                    owner=owner,
                    collateral_type=collateral_type,
                    collateral_adjustment=collateral_adjustment,
                    debit_adjustment=debit_adjustment,
                )
            )
            summary = self.summary(collateral_type, owner)

        logger.debug(
            "Position %s/%s adjusted by (%d, %d): collateral=%d debit=%d",
            owner,
            collateral_type,
            collateral_adjustment,
            debit_adjustment,
            summary.collateral,
            summary.debit,
        )
        return summary

    def confiscate_collateral_and_debit(
        self,
        owner: AccountId,
        collateral_type: CurrencyId,
        collateral_confiscate: int,
        debit_decrease: int,
    ) -> int:
        """
        Изъятие collateral и debit позиции в пользу treasury.

        Collateral остаётся в custody treasury, debt value уходит в debit_pool.

        Returns:
            Debt value, добавленный в debit_pool
        """
        validate_balance(collateral_confiscate, "collateral_confiscate")
        validate_balance(debit_decrease, "debit_decrease")
        with self._state.transaction():
            self._update_loan(owner, collateral_type, -collateral_confiscate, -debit_decrease)
            debit_value = self._risk.get_debit_value(collateral_type, debit_decrease)
            self._treasury.on_system_debit(debit_value)
        logger.info(
            "Confiscated %s/%s: collateral=%d debit=%d debit_value=%d",
            owner,
            collateral_type,
            collateral_confiscate,
            debit_decrease,
            debit_value,
        )
        return debit_value
