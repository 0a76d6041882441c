"""
Liquidity Exchange — constant-product AMM

Пулы ликвидности по каноническим TradingPair из enabled_trading_pairs.
Резервы хранятся на аккаунте exchange в fungible ledger; доли провайдеров
учитываются в WorldState.shares.

ИНВАРИАНТЫ:
- add_liquidity не уменьшает reserve_0 × reserve_1
- swap с fee > 0 строго увеличивает reserve_0 × reserve_1
- сумма долей провайдеров == total_shares пула
"""

import logging
from typing import List, Optional, Sequence, Tuple

from cdp_engine.core.config import EngineConfig
from cdp_engine.core.domain.currency import AccountId, CurrencyId, TradingPair
from cdp_engine.core.domain.events import LiquidityAdded, LiquidityRemoved, Swapped
from cdp_engine.core.errors import (
    ExcessiveSlippage,
    InsufficientLiquidity,
    InsufficientShares,
    InvalidLiquidityIncrement,
    InvalidTradingPathLength,
    NotAllowedTradingPair,
)
from cdp_engine.core.math import amm
from cdp_engine.core.math.fixed_point import Ratio, checked_add_balance, validate_balance
from cdp_engine.state import WorldState
from cdp_engine.support.currencies import MultiCurrency

logger = logging.getLogger(__name__)


class LiquidityExchange:
    """Constant-product AMM поверх WorldState.liquidity_pools."""

    def __init__(self, state: WorldState, config: EngineConfig, currencies: MultiCurrency):
        self._state = state
        self._config = config
        self._currencies = currencies

    @property
    def account(self) -> AccountId:
        return self._config.exchange_account

    # -------------------------------------------------------------------------
    # Пары и резервы
    # -------------------------------------------------------------------------

    def trading_pair(self, currency_a: CurrencyId, currency_b: CurrencyId) -> TradingPair:
        """
        Raises:
            NotAllowedTradingPair: пара не включена или валюты совпадают
        """
        if currency_a == currency_b:
            raise NotAllowedTradingPair(f"{currency_a}/{currency_b}")
        pair = TradingPair.of(currency_a, currency_b)
        if not self._config.is_trading_pair_enabled(pair):
            raise NotAllowedTradingPair(str(pair))
        return pair

    def _base_currency(self, pair: TradingPair) -> CurrencyId:
        """Сторона пула, в которой номинированы доли."""
        if pair.contains(self._config.stable_currency_id):
            return self._config.stable_currency_id
        return pair.token_1

    def _ordered_reserves(self, pair: TradingPair, first: CurrencyId) -> Tuple[int, int]:
        reserve_0, reserve_1 = self._state.liquidity_pools.get(pair, (0, 0))
        return (reserve_0, reserve_1) if first == pair.token_0 else (reserve_1, reserve_0)

    def _set_ordered_reserves(self, pair: TradingPair, first: CurrencyId, first_pool: int, second_pool: int) -> None:
        if first == pair.token_0:
            reserves = (first_pool, second_pool)
        else:
            reserves = (second_pool, first_pool)
        self._state.liquidity_pools[pair] = (
            validate_balance(reserves[0], "reserve_0"),
            validate_balance(reserves[1], "reserve_1"),
        )

    def get_liquidity_pool(self, currency_a: CurrencyId, currency_b: CurrencyId) -> Tuple[int, int]:
        """Резервы в порядке аргументов; (0, 0) для неизвестной пары."""
        if currency_a == currency_b:
            return 0, 0
        return self._ordered_reserves(TradingPair.of(currency_a, currency_b), currency_a)

    def get_total_shares(self, currency_a: CurrencyId, currency_b: CurrencyId) -> int:
        return self._state.total_shares.get(TradingPair.of(currency_a, currency_b), 0)

    def get_shares(self, who: AccountId, currency_a: CurrencyId, currency_b: CurrencyId) -> int:
        return self._state.shares.get((TradingPair.of(currency_a, currency_b), who), 0)

    # -------------------------------------------------------------------------
    # Ликвидность
    # -------------------------------------------------------------------------

    def add_liquidity(
        self,
        who: AccountId,
        currency_a: CurrencyId,
        currency_b: CurrencyId,
        max_amount_a: int,
        max_amount_b: int,
    ) -> int:
        """
        Добавление ликвидности.

        Первый депозит фиксирует пул ровно на запрошенных суммах; доли =
        сумма на стороне base (stable). Последующие депозиты идут по текущей
        цене пула: связывающая сторона вносится целиком, вторая — по
        соотношению пула с усечением.

        Returns:
            Приращение долей

        Raises:
            NotAllowedTradingPair, InvalidLiquidityIncrement, InsufficientBalance
        """
        validate_balance(max_amount_a, "max_amount_a")
        validate_balance(max_amount_b, "max_amount_b")
        pair = self.trading_pair(currency_a, currency_b)
        if max_amount_a == 0 or max_amount_b == 0:
            raise InvalidLiquidityIncrement("both amounts must be positive")

        base = self._base_currency(pair)
        other = pair.token_0 if base == pair.token_1 else pair.token_1
        max_base, max_other = (max_amount_a, max_amount_b) if currency_a == base else (max_amount_b, max_amount_a)

        base_pool, other_pool = self._ordered_reserves(pair, base)
        total_shares = self._state.total_shares.get(pair, 0)

        if total_shares == 0:
            if pair.contains(self._config.stable_currency_id):
                share_increment = max_base
            else:
                share_increment = max(max_base, max_other)
            other_increment, base_increment = max_other, max_base
        else:
            share_increment, other_increment, base_increment = amm.calculate_share_increment(
                other_pool, base_pool, total_shares, max_other, max_base
            )

        if share_increment == 0 or other_increment == 0 or base_increment == 0:
            raise InvalidLiquidityIncrement(
                f"{pair}: increment ({other_increment}, {base_increment}) -> {share_increment} shares"
            )

        with self._state.transaction():
            self._currencies.transfer(other, who, self.account, other_increment)
            self._currencies.transfer(base, who, self.account, base_increment)
            self._set_ordered_reserves(pair, base, base_pool + base_increment, other_pool + other_increment)
            self._state.total_shares[pair] = checked_add_balance(total_shares, share_increment)
            self._state.shares[(pair, who)] = checked_add_balance(
                self._state.shares.get((pair, who), 0), share_increment
            )
            self._state.deposit_event(
                LiquidityAdded(
                    provider=who,
                    currency_0=base,
                    amount_0=base_increment,
                    currency_1=other,
                    amount_1=other_increment,
                    share_increment=share_increment,
                )
            )

        logger.info(
            "Liquidity added to %s by %s: %s=%d %s=%d shares=%d",
            pair,
            who,
            base,
            base_increment,
            other,
            other_increment,
            share_increment,
        )
        return share_increment

    def remove_liquidity(
        self,
        who: AccountId,
        currency_a: CurrencyId,
        currency_b: CurrencyId,
        share: int,
    ) -> Tuple[int, int]:
        """
        Сжигание долей с пропорциональным выводом резервов.

        Returns:
            (amount_a, amount_b) в порядке аргументов

        Raises:
            NotAllowedTradingPair, InsufficientShares, InvalidLiquidityIncrement
        """
        validate_balance(share, "share")
        pair = self.trading_pair(currency_a, currency_b)
        owned = self._state.shares.get((pair, who), 0)
        if share == 0 or share > owned:
            raise InsufficientShares(f"{who} owns {owned} shares of {pair}, requested {share}")

        total_shares = self._state.total_shares.get(pair, 0)
        pool_a, pool_b = self._ordered_reserves(pair, currency_a)
        amount_a, amount_b = amm.calculate_liquidity_removal(share, total_shares, pool_a, pool_b)
        if amount_a == 0 and amount_b == 0:
            raise InvalidLiquidityIncrement(f"{pair}: removing {share} shares yields nothing")

        with self._state.transaction():
            self._set_ordered_reserves(pair, currency_a, pool_a - amount_a, pool_b - amount_b)
            self._state.total_shares[pair] = total_shares - share
            if owned == share:
                del self._state.shares[(pair, who)]
            else:
                self._state.shares[(pair, who)] = owned - share
            self._currencies.transfer(currency_a, self.account, who, amount_a)
            self._currencies.transfer(currency_b, self.account, who, amount_b)
            self._state.deposit_event(
                LiquidityRemoved(
                    provider=who,
                    currency_0=currency_a,
                    amount_0=amount_a,
                    currency_1=currency_b,
                    amount_1=amount_b,
                    share_decrement=share,
                )
            )

        logger.info("Liquidity removed from %s by %s: shares=%d", pair, who, share)
        return amount_a, amount_b

    # -------------------------------------------------------------------------
    # Котировки
    # -------------------------------------------------------------------------

    def _validate_path(self, path: Sequence[CurrencyId]) -> List[TradingPair]:
        if len(path) < 2 or len(path) > self._config.trading_path_limit:
            raise InvalidTradingPathLength(
                f"path length {len(path)} not in [2, {self._config.trading_path_limit}]"
            )
        return [self.trading_pair(path[i], path[i + 1]) for i in range(len(path) - 1)]

    def get_target_amount(self, supply_currency: CurrencyId, target_currency: CurrencyId, supply_amount: int) -> int:
        """Выход одного hop (0 если пула нет)."""
        if supply_currency == target_currency:
            return 0
        pair = TradingPair.of(supply_currency, target_currency)
        supply_pool, target_pool = self._ordered_reserves(pair, supply_currency)
        return amm.get_target_amount(supply_pool, target_pool, supply_amount, self._config.exchange_fee)

    def get_supply_amount(self, supply_currency: CurrencyId, target_currency: CurrencyId, target_amount: int) -> int:
        """Вход одного hop для точного выхода (0 если недостижимо)."""
        if supply_currency == target_currency:
            return 0
        pair = TradingPair.of(supply_currency, target_currency)
        supply_pool, target_pool = self._ordered_reserves(pair, supply_currency)
        return amm.get_supply_amount(supply_pool, target_pool, target_amount, self._config.exchange_fee)

    def get_exchange_slippage(
        self, supply_currency: CurrencyId, target_currency: CurrencyId, supply_amount: int
    ) -> Optional[Ratio]:
        """Доля глубины пула, потребляемая свапом (None если пула нет)."""
        if supply_currency == target_currency:
            return None
        pair = TradingPair.of(supply_currency, target_currency)
        supply_pool, target_pool = self._ordered_reserves(pair, supply_currency)
        if target_pool == 0:
            return None
        return amm.get_exchange_slippage(supply_pool, supply_amount)

    def get_target_amounts(self, path: Sequence[CurrencyId], supply_amount: int) -> List[int]:
        """
        Количества вдоль пути для точного входа.

        Raises:
            InvalidTradingPathLength, NotAllowedTradingPair, InsufficientLiquidity
        """
        self._validate_path(path)
        amounts = [supply_amount]
        for i in range(len(path) - 1):
            target = self.get_target_amount(path[i], path[i + 1], amounts[-1])
            if target == 0:
                raise InsufficientLiquidity(f"hop {path[i]}->{path[i + 1]} yields zero")
            amounts.append(target)
        return amounts

    def get_supply_amounts(self, path: Sequence[CurrencyId], target_amount: int) -> List[int]:
        """
        Количества вдоль пути для точного выхода.

        Raises:
            InvalidTradingPathLength, NotAllowedTradingPair, InsufficientLiquidity
        """
        self._validate_path(path)
        amounts = [target_amount]
        for i in range(len(path) - 1, 0, -1):
            supply = self.get_supply_amount(path[i - 1], path[i], amounts[0])
            if supply == 0:
                raise InsufficientLiquidity(f"hop {path[i - 1]}->{path[i]} cannot deliver {amounts[0]}")
            amounts.insert(0, supply)
        return amounts

    # -------------------------------------------------------------------------
    # Свапы
    # -------------------------------------------------------------------------

    def _do_swap(self, who: AccountId, path: Sequence[CurrencyId], amounts: List[int]) -> None:
        with self._state.transaction():
            self._currencies.transfer(path[0], who, self.account, amounts[0])
            for i in range(len(path) - 1):
                pair = TradingPair.of(path[i], path[i + 1])
                supply_pool, target_pool = self._ordered_reserves(pair, path[i])
                self._set_ordered_reserves(
                    pair, path[i], supply_pool + amounts[i], target_pool - amounts[i + 1]
                )
            self._currencies.transfer(path[-1], self.account, who, amounts[-1])
            self._state.deposit_event(
                Swapped(trader=who, path=list(path), supply_amount=amounts[0], target_amount=amounts[-1])
            )

    def swap_with_exact_supply(
        self,
        who: AccountId,
        path: Sequence[CurrencyId],
        supply_amount: int,
        min_target_amount: int,
    ) -> int:
        """
        Свап точного входа по пути.

        Raises:
            InvalidTradingPathLength, NotAllowedTradingPair, InsufficientLiquidity,
            ExcessiveSlippage, InsufficientBalance

        Returns:
            Полученное количество path[-1]
        """
        validate_balance(supply_amount, "supply_amount")
        validate_balance(min_target_amount, "min_target_amount")
        amounts = self.get_target_amounts(path, supply_amount)
        if amounts[-1] < min_target_amount:
            raise ExcessiveSlippage(f"target {amounts[-1]} < min {min_target_amount}")

        self._do_swap(who, path, amounts)
        logger.debug("Swap %s by %s: %d -> %d", "->".join(path), who, amounts[0], amounts[-1])
        return amounts[-1]

    def swap_with_exact_target(
        self,
        who: AccountId,
        path: Sequence[CurrencyId],
        target_amount: int,
        max_supply_amount: int,
    ) -> int:
        """
        Свап точного выхода по пути.

        Returns:
            Потраченное количество path[0]
        """
        validate_balance(target_amount, "target_amount")
        validate_balance(max_supply_amount, "max_supply_amount")
        amounts = self.get_supply_amounts(path, target_amount)
        if amounts[0] > max_supply_amount:
            raise ExcessiveSlippage(f"supply {amounts[0]} > max {max_supply_amount}")

        self._do_swap(who, path, amounts)
        logger.debug("Swap %s by %s: %d -> %d", "->".join(path), who, amounts[0], amounts[-1])
        return amounts[0]
