"""
Currencies — fungible multi-currency ledger

Generic asset transfer — внешний сервис; engine потребляет его через
протокол MultiCurrency. InMemoryCurrencies хранит балансы в WorldState,
поэтому откатывается вместе с транзакцией.

Ledger отклоняет любую операцию, дающую отрицательный баланс.
"""

import logging
from typing import Protocol

from cdp_engine.core.domain.currency import AccountId, CurrencyId
from cdp_engine.core.errors import InsufficientBalance
from cdp_engine.core.math.fixed_point import (
    balance_from_amount_abs,
    checked_add_balance,
    validate_amount,
    validate_balance,
)
from cdp_engine.state import WorldState

logger = logging.getLogger(__name__)


class MultiCurrency(Protocol):
    """Интерфейс fungible ledger, потребляемый engine."""

    def free_balance(self, currency_id: CurrencyId, who: AccountId) -> int: ...

    def total_issuance(self, currency_id: CurrencyId) -> int: ...

    def transfer(self, currency_id: CurrencyId, source: AccountId, dest: AccountId, amount: int) -> None: ...

    def deposit(self, currency_id: CurrencyId, who: AccountId, amount: int) -> None: ...

    def withdraw(self, currency_id: CurrencyId, who: AccountId, amount: int) -> None: ...

    def update_balance(self, currency_id: CurrencyId, who: AccountId, by_amount: int) -> None: ...


class InMemoryCurrencies:
    """
    Ledger поверх WorldState.balances.

    deposit/withdraw изменяют total_issuance (mint/burn), transfer — нет.
    """

    def __init__(self, state: WorldState):
        self._state = state

    def free_balance(self, currency_id: CurrencyId, who: AccountId) -> int:
        return self._state.balances.get((who, currency_id), 0)

    def total_issuance(self, currency_id: CurrencyId) -> int:
        return self._state.total_issuance.get(currency_id, 0)

    def _ensure_can_withdraw(self, currency_id: CurrencyId, who: AccountId, amount: int) -> None:
        balance = self.free_balance(currency_id, who)
        if balance < amount:
            raise InsufficientBalance(f"{who} has {balance} {currency_id}, needs {amount}")

    def _set_balance(self, currency_id: CurrencyId, who: AccountId, value: int) -> None:
        if value == 0:
            self._state.balances.pop((who, currency_id), None)
        else:
            self._state.balances[(who, currency_id)] = validate_balance(value)

    def transfer(self, currency_id: CurrencyId, source: AccountId, dest: AccountId, amount: int) -> None:
        validate_balance(amount, "amount")
        if amount == 0 or source == dest:
            return
        with self._state.transaction():
            self._ensure_can_withdraw(currency_id, source, amount)
            self._set_balance(currency_id, source, self.free_balance(currency_id, source) - amount)
            self._set_balance(
                currency_id, dest, checked_add_balance(self.free_balance(currency_id, dest), amount)
            )

    def deposit(self, currency_id: CurrencyId, who: AccountId, amount: int) -> None:
        """Mint: баланс и total_issuance растут на amount."""
        validate_balance(amount, "amount")
        if amount == 0:
            return
        with self._state.transaction():
            self._state.total_issuance[currency_id] = checked_add_balance(
                self.total_issuance(currency_id), amount
            )
            self._set_balance(
                currency_id, who, checked_add_balance(self.free_balance(currency_id, who), amount)
            )

    def withdraw(self, currency_id: CurrencyId, who: AccountId, amount: int) -> None:
        """
        Burn.

        Raises:
            InsufficientBalance: баланс меньше amount
        """
        validate_balance(amount, "amount")
        if amount == 0:
            return
        with self._state.transaction():
            self._ensure_can_withdraw(currency_id, who, amount)
            self._set_balance(currency_id, who, self.free_balance(currency_id, who) - amount)
            self._state.total_issuance[currency_id] = self.total_issuance(currency_id) - amount

    def update_balance(self, currency_id: CurrencyId, who: AccountId, by_amount: int) -> None:
        """Знаковое изменение баланса (i128): >0 — deposit, <0 — withdraw."""
        validate_amount(by_amount, "by_amount")
        if by_amount >= 0:
            self.deposit(currency_id, who, by_amount)
        else:
            self.withdraw(currency_id, who, balance_from_amount_abs(by_amount))
