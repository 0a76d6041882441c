"""
CDP Treasury — общий пул collateral / debit / surplus

Treasury держит custody всего collateral позиций и изъятого залога
(total_collaterals), учитывает системный долг (debit_pool) и излишек
(surplus_pool), выпускает и сжигает stable currency для позиций и
диспетчеризует аукционы.

ИНВАРИАНТЫ:
- total_collaterals[type] == баланс type на аккаунте treasury
- баланс stable на аккаунте treasury == surplus_pool
- collateral в аукционах ≤ total_collaterals[type]
"""

import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from cdp_engine.auth import Authority
from cdp_engine.core.config import EngineConfig
from cdp_engine.core.domain.currency import AccountId, CurrencyId
from cdp_engine.core.domain.events import (
    CollateralAuctionCreated,
    CollateralAuctionSettled,
    SurplusDebitOffset,
)
from cdp_engine.core.errors import (
    CollateralNotEnough,
    DebitPoolNotEnough,
    InvariantViolation,
    SurplusPoolNotEnough,
    UnknownAuction,
)
from cdp_engine.core.math.fixed_point import (
    Ratio,
    checked_add_balance,
    checked_sub_balance,
    validate_balance,
)
from cdp_engine.exchange.dex import LiquidityExchange
from cdp_engine.state import CollateralAuctionDebt, WorldState
from cdp_engine.support.auction import AuctionManager
from cdp_engine.support.currencies import MultiCurrency

logger = logging.getLogger(__name__)


class TreasuryPools(BaseModel):
    """Immutable снимок пулов treasury."""

    total_collaterals: Dict[CurrencyId, int] = Field(default_factory=dict)
    debit_pool: int = Field(0, ge=0)
    surplus_pool: int = Field(0, ge=0)

    model_config = {"frozen": True}


class CDPTreasury:
    """Treasury Pool поверх WorldState."""

    def __init__(
        self,
        state: WorldState,
        config: EngineConfig,
        currencies: MultiCurrency,
        exchange: LiquidityExchange,
        auction_manager: AuctionManager,
        authority: Authority,
    ):
        self._state = state
        self._config = config
        self._currencies = currencies
        self._exchange = exchange
        self._auctions = auction_manager
        self._authority = authority

    @property
    def account(self) -> AccountId:
        return self._config.treasury_account

    # -------------------------------------------------------------------------
    # Запросы
    # -------------------------------------------------------------------------

    def get_total_collaterals(self, collateral_type: CurrencyId) -> int:
        return self._state.total_collaterals.get(collateral_type, 0)

    def get_debit_pool(self) -> int:
        return self._state.debit_pool

    def get_surplus_pool(self) -> int:
        return self._state.surplus_pool

    def get_debit_proportion(self, amount: int) -> Ratio:
        """Доля amount в total issuance stable currency (0 при нулевом выпуске)."""
        issuance = self._currencies.total_issuance(self._config.stable_currency_id)
        proportion = Ratio.checked_from_rational(amount, issuance)
        return proportion if proportion is not None else Ratio.zero()

    def free_collateral(self, collateral_type: CurrencyId) -> int:
        """Collateral в custody, не выставленный на аукцион."""
        in_auction = self._auctions.get_total_collateral_in_auction(collateral_type)
        free = self.get_total_collaterals(collateral_type) - in_auction
        if free < 0:
            raise InvariantViolation(
                f"{collateral_type}: collateral in auction {in_auction} exceeds custody"
            )
        return free

    def snapshot(self) -> TreasuryPools:
        return TreasuryPools(
            total_collaterals=dict(self._state.total_collaterals),
            debit_pool=self._state.debit_pool,
            surplus_pool=self._state.surplus_pool,
        )

    # -------------------------------------------------------------------------
    # Collateral custody
    # -------------------------------------------------------------------------

    def deposit_collateral(self, source: AccountId, collateral_type: CurrencyId, amount: int) -> None:
        validate_balance(amount, "amount")
        with self._state.transaction():
            self._currencies.transfer(collateral_type, source, self.account, amount)
            self._state.total_collaterals[collateral_type] = checked_add_balance(
                self.get_total_collaterals(collateral_type), amount
            )

    def withdraw_collateral(self, to: AccountId, collateral_type: CurrencyId, amount: int) -> None:
        """
        Выдача collateral из custody.

        Raises:
            CollateralNotEnough: custody меньше amount
        """
        validate_balance(amount, "amount")
        total = self.get_total_collaterals(collateral_type)
        if total < amount:
            raise CollateralNotEnough(f"{collateral_type}: custody {total} < {amount}")
        with self._state.transaction():
            self._currencies.transfer(collateral_type, self.account, to, amount)
            self._state.total_collaterals[collateral_type] = total - amount

    # -------------------------------------------------------------------------
    # Debit / surplus
    # -------------------------------------------------------------------------

    def on_system_debit(self, amount: int) -> None:
        validate_balance(amount, "amount")
        with self._state.transaction():
            self._state.debit_pool = checked_add_balance(self._state.debit_pool, amount)

    def on_system_surplus(self, amount: int) -> None:
        """Выпуск stable на аккаунт treasury в surplus_pool."""
        validate_balance(amount, "amount")
        with self._state.transaction():
            self._currencies.deposit(self._config.stable_currency_id, self.account, amount)
            self._state.surplus_pool = checked_add_balance(self._state.surplus_pool, amount)

    def issue_debit(self, who: AccountId, amount: int) -> None:
        self._currencies.deposit(self._config.stable_currency_id, who, amount)

    def burn_debit(self, who: AccountId, amount: int) -> None:
        """Raises InsufficientBalance, если у who недостаточно stable."""
        self._currencies.withdraw(self._config.stable_currency_id, who, amount)

    def offset_surplus_and_debit(self) -> int:
        """
        Взаимозачёт surplus и debit: сжигается min(surplus_pool, debit_pool).

        Returns:
            Сожжённая сумма
        """
        amount = min(self._state.surplus_pool, self._state.debit_pool)
        if amount == 0:
            return 0
        with self._state.transaction():
            self._currencies.withdraw(self._config.stable_currency_id, self.account, amount)
            self._state.surplus_pool -= amount
            self._state.debit_pool -= amount
            self._state.deposit_event(SurplusDebitOffset(amount=amount))
        logger.debug("Offset surplus and debit: %d", amount)
        return amount

    def on_finalize(self) -> int:
        """Хук конца блока."""
        return self.offset_surplus_and_debit()

    # -------------------------------------------------------------------------
    # Exchange
    # -------------------------------------------------------------------------

    def swap_collateral_to_stable(self, collateral_type: CurrencyId, supply_amount: int, min_target: int) -> int:
        """
        Продажа collateral из custody в AMM, выручка в surplus_pool.

        Raises:
            CollateralNotEnough: свободного collateral меньше supply_amount
            ExcessiveSlippage / InsufficientLiquidity: из exchange

        Returns:
            Полученный stable
        """
        validate_balance(supply_amount, "supply_amount")
        if self.free_collateral(collateral_type) < supply_amount:
            raise CollateralNotEnough(f"{collateral_type}: free custody < {supply_amount}")

        with self._state.transaction():
            proceeds = self._exchange.swap_with_exact_supply(
                self.account,
                [collateral_type, self._config.stable_currency_id],
                supply_amount,
                min_target,
            )
            self._state.total_collaterals[collateral_type] = checked_sub_balance(
                self.get_total_collaterals(collateral_type), supply_amount
            )
            self._state.surplus_pool = checked_add_balance(self._state.surplus_pool, proceeds)
        return proceeds

    # -------------------------------------------------------------------------
    # Auctions
    # -------------------------------------------------------------------------

    def create_collateral_auction(
        self,
        collateral_type: CurrencyId,
        amount: int,
        target: int,
        refund_recipient: AccountId,
        debit_value: Optional[int] = None,
    ) -> int:
        """
        Выставление collateral из custody на аукцион.

        Args:
            debit_value: долг, покрываемый аукционом (по умолчанию target)

        Raises:
            CollateralNotEnough: свободного collateral меньше amount
        """
        validate_balance(amount, "amount")
        validate_balance(target, "target")
        if self.free_collateral(collateral_type) < amount:
            raise CollateralNotEnough(f"{collateral_type}: free custody < {amount}")

        with self._state.transaction():
            auction_id = self._auctions.new_collateral_auction(refund_recipient, collateral_type, amount, target)
            self._state.collateral_auction_debts[auction_id] = CollateralAuctionDebt(
                collateral_type=collateral_type,
                amount=amount,
                debit_value=target if debit_value is None else debit_value,
                target=target,
                refund_recipient=refund_recipient,
            )
            self._state.deposit_event(
                CollateralAuctionCreated(
                    auction_id=auction_id,
                    collateral_type=collateral_type,
                    amount=amount,
                    target=target,
                    refund_recipient=refund_recipient,
                )
            )
        return auction_id

    def settle_collateral_auction(self, auction_id: int, payment: int) -> CollateralAuctionSettled:
        """
        Учёт платежа завершённого collateral auction.

        Платёж уже на аккаунте treasury. Списывается
        min(payment, долг аукциона, debit_pool), остаток идёт в surplus_pool.
        """
        validate_balance(payment, "payment")
        debt = self._state.collateral_auction_debts.get(auction_id)
        if debt is None:
            raise UnknownAuction(f"no treasury record for auction {auction_id}")

        write_off = min(payment, debt.debit_value, self._state.debit_pool)
        with self._state.transaction():
            del self._state.collateral_auction_debts[auction_id]
            self._currencies.withdraw(self._config.stable_currency_id, self.account, write_off)
            self._state.debit_pool -= write_off
            self._state.surplus_pool = checked_add_balance(self._state.surplus_pool, payment - write_off)
            settled = CollateralAuctionSettled(
                auction_id=auction_id,
                collateral_type=debt.collateral_type,
                payment=payment,
                debit_written_off=write_off,
                surplus=payment - write_off,
            )
            self._state.deposit_event(settled)
        return settled

    def release_collateral_auction(self, auction_id: int) -> Optional[CollateralAuctionDebt]:
        """Снятие метаданных отменённого аукциона; лот остаётся в custody."""
        with self._state.transaction():
            return self._state.collateral_auction_debts.pop(auction_id, None)

    def create_surplus_auction(self, origin: Any, amount: int) -> int:
        """
        Raises:
            BadOrigin, SurplusPoolNotEnough
        """
        self._authority.ensure_root(origin)
        validate_balance(amount, "amount")
        available = self._state.surplus_pool - self._auctions.get_total_surplus_in_auction()
        if amount > available:
            raise SurplusPoolNotEnough(f"surplus available {available} < {amount}")
        return self._auctions.new_surplus_auction(amount)

    def create_debit_auction(self, origin: Any, debit_amount: int, initial_amount: int) -> int:
        """
        Raises:
            BadOrigin, DebitPoolNotEnough
        """
        self._authority.ensure_root(origin)
        validate_balance(debit_amount, "debit_amount")
        available = self._state.debit_pool - self._auctions.get_total_debit_in_auction()
        if debit_amount > available:
            raise DebitPoolNotEnough(f"debit available {available} < {debit_amount}")
        return self._auctions.new_debit_auction(initial_amount, debit_amount)
