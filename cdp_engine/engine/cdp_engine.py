"""
CDP Engine — Risk Engine: параметры риска, безопасность, ликвидация, settlement

Оркестратор, связывающий Position Ledger, Treasury Pool, Liquidity Exchange,
Auction House и Emergency Shutdown.

Состояния позиции: Healthy → Unsafe → Liquidating{strategy} → Settled.

ЛИКВИДАЦИЯ (permissionless, atomic):
1. shutdown активен → MustBeforeShutdown
2. позиция не Unsafe → AlreadySafe (без мутаций); нет цены → InvalidFeedPrice
3. freeze: позиция обнуляется, collateral остаётся в custody treasury,
   debt value → debit_pool
4. выбор стратегии (engine/strategy.py): exchange path, если полностью
   жизнеспособен, иначе auction
5a. exchange: весь изъятый collateral продаётся в AMM → SettledImmediately
5b. auction: lot = collateral, target = debt + penalty × debt → PendingAuction
6. событие LiquidateUnsafeCDP

Penalty применяется только в auction path (и в settle_cdp_has_debit).
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from cdp_engine.auth import Authority
from cdp_engine.core.config import EngineConfig
from cdp_engine.core.contracts import validate_collateral_params_update
from cdp_engine.core.domain.currency import AccountId, CurrencyId, TradingPair
from cdp_engine.core.domain.events import (
    CollateralAuctionCancelled,
    CollateralParamUpdated,
    EngineEvent,
    GlobalStabilityFeeUpdated,
    InterestAccrued,
    LiquidateUnsafeCDP,
    LiquidationOutcome,
    PendingAuction,
    SettleCDPInDebit,
    SettledImmediately,
)
from cdp_engine.core.domain.position import PositionSummary
from cdp_engine.core.domain.risk_params import (
    NO_CHANGE,
    Change,
    CollateralParamsUpdate,
    RiskParameters,
)
from cdp_engine.core.errors import (
    AlreadySafe,
    ArithmeticOverflow,
    BelowLiquidationRatio,
    BelowRequiredCollateralRatio,
    ExceedDebitValueHardCap,
    InvalidCollateralType,
    InvalidFeedPrice,
    MustAfterShutdown,
    MustBeforeShutdown,
    NoDebitValue,
    RemainDebitValueTooSmall,
    UnknownAuction,
)
from cdp_engine.core.math.fixed_point import (
    ExchangeRate,
    Price,
    Rate,
    Ratio,
    checked_add_balance,
    mul_int_or_overflow,
    validate_balance,
)
from cdp_engine.engine.strategy import LiquidationStrategySelector, StrategyDecision
from cdp_engine.exchange.dex import LiquidityExchange
from cdp_engine.ledger.loans import PositionLedger
from cdp_engine.shutdown.coordinator import ShutdownFlag
from cdp_engine.state import WorldState
from cdp_engine.support.oracle import PriceSource
from cdp_engine.treasury.cdp_treasury import CDPTreasury

logger = logging.getLogger(__name__)


class CDPEngine:
    """Risk Engine."""

    def __init__(
        self,
        state: WorldState,
        config: EngineConfig,
        authority: Authority,
        oracle: PriceSource,
        exchange: LiquidityExchange,
        treasury: CDPTreasury,
        shutdown: ShutdownFlag,
    ):
        self._state = state
        self._config = config
        self._authority = authority
        self._oracle = oracle
        self._exchange = exchange
        self._treasury = treasury
        self._shutdown = shutdown
        self._selector = LiquidationStrategySelector(
            max_slippage=config.max_slippage_swap_with_exchange,
            exchange_fee=config.exchange_fee,
        )
        self.ledger = PositionLedger(state, config, treasury, risk_manager=self)

    # =========================================================================
    # ПАРАМЕТРЫ РИСКА
    # =========================================================================

    def _ensure_collateral(self, collateral_type: CurrencyId) -> None:
        if not self._config.is_collateral(collateral_type):
            raise InvalidCollateralType(f"{collateral_type} is not a registered collateral")

    def collateral_params(self, collateral_type: CurrencyId) -> RiskParameters:
        """
        Действующие параметры риска типа.

        Тип без сохранённых параметров получает default liquidation ratio и
        penalty из конфигурации; остальные поля не заданы, cap = 0.
        """
        stored = self._state.risk_params.get(collateral_type)
        if stored is not None:
            return stored
        return RiskParameters(
            liquidation_ratio=self._config.default_liquidation_ratio,
            liquidation_penalty=self._config.default_liquidation_penalty,
        )

    def debit_exchange_rate(self, collateral_type: CurrencyId) -> ExchangeRate:
        return self._state.debit_exchange_rates.get(collateral_type, self._config.default_debit_exchange_rate)

    def get_global_stability_fee(self) -> Rate:
        return self._state.global_stability_fee

    def get_stability_fee(self, collateral_type: CurrencyId) -> Rate:
        """Глобальная ставка + ставка типа."""
        fee = self._state.global_stability_fee
        own = self.collateral_params(collateral_type).stability_fee
        if own is None:
            return fee
        total = fee.checked_add(own)
        if total is None:
            raise ArithmeticOverflow(f"{collateral_type}: stability fee {fee} + {own} overflows")
        return total

    def get_liquidation_penalty(self, collateral_type: CurrencyId) -> Rate:
        penalty = self.collateral_params(collateral_type).liquidation_penalty
        return penalty if penalty is not None else Rate.zero()

    # =========================================================================
    # ВЫЧИСЛЕНИЯ
    # =========================================================================

    def get_debit_value(self, collateral_type: CurrencyId, debit: int) -> int:
        """debit × DebitExchangeRate (overflow → ArithmeticOverflow)."""
        return mul_int_or_overflow(self.debit_exchange_rate(collateral_type), debit)

    def calculate_collateral_ratio(
        self,
        collateral_type: CurrencyId,
        collateral: int,
        debit_value: int,
        price: Price,
    ) -> Ratio:
        """
        (collateral × price) / debit_value; debit_value = 0 → Ratio.max_value().

        Examples:
            >>> engine.calculate_collateral_ratio("XBTC", 100, 50, Price.one())
            Ratio(2)
        """
        if debit_value == 0:
            return Ratio.max_value()
        locked_collateral_value = mul_int_or_overflow(price, collateral)
        # ratio вне u128 больше любого порога
        return Ratio.saturating_from_rational(locked_collateral_value, debit_value)

    def current_collateral_ratio(
        self, collateral_type: CurrencyId, collateral: int, debit: int
    ) -> Optional[Ratio]:
        """Ratio по текущей цене oracle; None, если цены нет и долг ненулевой."""
        if debit == 0:
            return Ratio.max_value()
        price = self._oracle.get_price(collateral_type)
        if price is None:
            return None
        return self.calculate_collateral_ratio(
            collateral_type, collateral, self.get_debit_value(collateral_type, debit), price
        )

    def _require_price(self, collateral_type: CurrencyId) -> Price:
        price = self._oracle.get_price(collateral_type)
        if price is None:
            raise InvalidFeedPrice(f"no price for {collateral_type}")
        return price

    # =========================================================================
    # ПРОВЕРКИ (RiskManager для Position Ledger)
    # =========================================================================

    def check_debit_cap(self, collateral_type: CurrencyId, total_debit_value: int) -> None:
        """
        Raises:
            ExceedDebitValueHardCap: total_debit_value > maximum_total_debit_value
        """
        cap = self.collateral_params(collateral_type).maximum_total_debit_value
        if total_debit_value > cap:
            raise ExceedDebitValueHardCap(f"{collateral_type}: debit value {total_debit_value} > cap {cap}")

    def check_position_valid(
        self,
        collateral_type: CurrencyId,
        collateral: int,
        debit: int,
        check_required_ratio: bool,
    ) -> None:
        """
        Валидность позиции с ненулевым долгом.

        Порядок проверок:
        1. цена доступна (InvalidFeedPrice)
        2. ratio ≥ required_collateral_ratio, если check_required_ratio
        3. ratio ≥ liquidation_ratio
        4. debt value ≥ minimum_debit_value
        """
        if debit == 0:
            return

        price = self._require_price(collateral_type)
        debit_value = self.get_debit_value(collateral_type, debit)
        ratio = self.calculate_collateral_ratio(collateral_type, collateral, debit_value, price)
        params = self.collateral_params(collateral_type)

        if check_required_ratio and params.required_collateral_ratio is not None:
            if ratio < params.required_collateral_ratio:
                raise BelowRequiredCollateralRatio(
                    f"{collateral_type}: ratio {ratio} < required {params.required_collateral_ratio}"
                )

        if params.liquidation_ratio is not None and ratio < params.liquidation_ratio:
            raise BelowLiquidationRatio(
                f"{collateral_type}: ratio {ratio} < liquidation {params.liquidation_ratio}"
            )

        if debit_value < self._config.minimum_debit_value:
            raise RemainDebitValueTooSmall(
                f"{collateral_type}: debit value {debit_value} < minimum {self._config.minimum_debit_value}"
            )

    def is_cdp_unsafe(self, collateral_type: CurrencyId, owner: AccountId) -> bool:
        """
        Unsafe ⇔ liquidation_ratio задан и текущий ratio ниже него.

        Raises:
            InvalidFeedPrice: цены нет (позиция не ликвидируема в этом раунде)
        """
        price = self._require_price(collateral_type)
        liquidation_ratio = self.collateral_params(collateral_type).liquidation_ratio
        if liquidation_ratio is None:
            return False

        position = self.ledger.positions(collateral_type, owner)
        debit_value = self.get_debit_value(collateral_type, position.debit)
        ratio = self.calculate_collateral_ratio(collateral_type, position.collateral, debit_value, price)
        return ratio < liquidation_ratio

    def find_unsafe_positions(self, collateral_type: CurrencyId) -> List[AccountId]:
        """Кандидаты на ликвидацию (по owner); без цены — пустой список."""
        if self._oracle.get_price(collateral_type) is None:
            logger.warning("Skipping unsafe scan for %s: no feed price", collateral_type)
            return []
        return [
            owner
            for owner in self.ledger.owners(collateral_type)
            if self.is_cdp_unsafe(collateral_type, owner)
        ]

    # =========================================================================
    # POSITION ADJUSTMENT
    # =========================================================================

    def adjust_position(
        self,
        owner: AccountId,
        collateral_type: CurrencyId,
        collateral_adjustment: int,
        debit_adjustment: int,
    ) -> PositionSummary:
        """
        Корректировка позиции (см. PositionLedger.adjust_position).

        Raises:
            MustBeforeShutdown: увеличение долга во время shutdown
        """
        if self._shutdown.is_shutdown() and debit_adjustment > 0:
            raise MustBeforeShutdown("debt cannot increase after emergency shutdown")
        return self.ledger.adjust_position(owner, collateral_type, collateral_adjustment, debit_adjustment)

    # =========================================================================
    # ЛИКВИДАЦИЯ
    # =========================================================================

    def _select_strategy(self, collateral_type: CurrencyId, seized: int, debit_value: int) -> StrategyDecision:
        stable = self._config.stable_currency_id
        pair = TradingPair.of(collateral_type, stable)
        if self._config.is_trading_pair_enabled(pair):
            supply_pool, target_pool = self._exchange.get_liquidity_pool(collateral_type, stable)
        else:
            supply_pool, target_pool = 0, 0
        return self._selector.evaluate(supply_pool, target_pool, seized, debit_value)

    def liquidate(self, collateral_type: CurrencyId, owner: AccountId) -> LiquidationOutcome:
        """
        Ликвидация unsafe позиции.

        Returns:
            SettledImmediately{proceeds} | PendingAuction{auction_id}

        Raises:
            MustBeforeShutdown, InvalidCollateralType, InvalidFeedPrice,
            AlreadySafe, ArithmeticOverflow
        """
        if self._shutdown.is_shutdown():
            raise MustBeforeShutdown("liquidation is disabled after emergency shutdown")
        self._ensure_collateral(collateral_type)

        with self._state.transaction():
            try:
                unsafe = self.is_cdp_unsafe(collateral_type, owner)
            except InvalidFeedPrice:
                logger.warning("Liquidation of %s/%s rejected: no feed price", owner, collateral_type)
                raise
            if not unsafe:
                raise AlreadySafe(f"{owner}/{collateral_type} is not unsafe")

            position = self.ledger.positions(collateral_type, owner)
            debit_value = self.ledger.confiscate_collateral_and_debit(
                owner, collateral_type, position.collateral, position.debit
            )

            decision = self._select_strategy(collateral_type, position.collateral, debit_value)
            logger.debug("Strategy for %s/%s: %s (%s)", owner, collateral_type, decision.reason, decision.details)

            outcome: LiquidationOutcome
            if decision.use_exchange:
                proceeds = self._treasury.swap_collateral_to_stable(
                    collateral_type, position.collateral, debit_value
                )
                outcome = SettledImmediately(proceeds=proceeds)
            else:
                penalty = self.get_liquidation_penalty(collateral_type)
                target = checked_add_balance(debit_value, mul_int_or_overflow(penalty, debit_value))
                auction_id = self._treasury.create_collateral_auction(
                    collateral_type, position.collateral, target, owner, debit_value=debit_value
                )
                outcome = PendingAuction(auction_id=auction_id)

            self._state.deposit_event(
                LiquidateUnsafeCDP(
                    collateral_type=collateral_type,
                    owner=owner,
                    collateral_seized=position.collateral,
                    debit_value_owed=debit_value,
                    strategy=outcome.strategy,
                )
            )

        logger.info(
            "Liquidated %s/%s: collateral=%d debit_value=%d strategy=%s",
            owner,
            collateral_type,
            position.collateral,
            debit_value,
            outcome.strategy.value,
        )
        return outcome

    # =========================================================================
    # SETTLEMENT
    # =========================================================================

    def settle_cdp_has_debit(self, owner: AccountId, collateral_type: CurrencyId) -> SettleCDPInDebit:
        """
        Списание долга позиции.

        Debt value уходит в debit_pool, в custody treasury остаётся
        min((debt + penalty × debt) / price, collateral), остаток collateral
        возвращается owner.

        Raises:
            NoDebitValue, InvalidFeedPrice, ArithmeticOverflow
        """
        self._ensure_collateral(collateral_type)
        with self._state.transaction():
            position = self.ledger.positions(collateral_type, owner)
            if position.debit == 0:
                raise NoDebitValue(f"{owner}/{collateral_type} has no debit")

            price = self._require_price(collateral_type)
            debit_value = self.get_debit_value(collateral_type, position.debit)
            penalty = self.get_liquidation_penalty(collateral_type)
            target = checked_add_balance(debit_value, mul_int_or_overflow(penalty, debit_value))

            settle_price = price.reciprocal()
            needed = None if settle_price is None else settle_price.checked_mul_int(target)
            confiscate = position.collateral if needed is None else min(needed, position.collateral)

            self.ledger.confiscate_collateral_and_debit(owner, collateral_type, position.collateral, position.debit)
            refund = position.collateral - confiscate
            if refund > 0:
                self._treasury.withdraw_collateral(owner, collateral_type, refund)

            event = SettleCDPInDebit(
                collateral_type=collateral_type,
                owner=owner,
                collateral_confiscated=confiscate,
                debit_value=debit_value,
                collateral_refunded=refund,
            )
            self._state.deposit_event(event)

        logger.info(
            "Settled %s/%s: debit_value=%d confiscated=%d refunded=%d",
            owner,
            collateral_type,
            debit_value,
            confiscate,
            refund,
        )
        return event

    def settle(self, collateral_type: CurrencyId, owner: AccountId) -> SettleCDPInDebit:
        """
        Публичный settlement, доступный только после shutdown.

        Raises:
            MustAfterShutdown: shutdown не активен
        """
        if not self._shutdown.is_shutdown():
            raise MustAfterShutdown("settle is only available after emergency shutdown")
        return self.settle_cdp_has_debit(owner, collateral_type)

    # =========================================================================
    # AUCTION CALLBACKS
    # =========================================================================

    def on_auction_ended(self, auction_id: int, collateral_type: CurrencyId, winning_payment: int) -> EngineEvent:
        """
        Завершение collateral auction.

        Идемпотентно: повторная доставка возвращает первый результат.

        Raises:
            UnknownAuction: аукцион не создавался этим engine или тип не совпадает
        """
        validate_balance(winning_payment, "winning_payment")
        with self._state.transaction():
            previous = self._state.auction_settlements.get(auction_id)
            if previous is not None:
                logger.debug("Duplicate completion for auction %d ignored", auction_id)
                return previous

            debt = self._state.collateral_auction_debts.get(auction_id)
            if debt is None or debt.collateral_type != collateral_type:
                raise UnknownAuction(f"auction {auction_id} for {collateral_type} is not pending")

            settled = self._treasury.settle_collateral_auction(auction_id, winning_payment)
            self._state.auction_settlements[auction_id] = settled

        logger.info(
            "Collateral auction %d settled: payment=%d written_off=%d surplus=%d",
            auction_id,
            winning_payment,
            settled.debit_written_off,
            settled.surplus,
        )
        return settled

    def on_auction_cancelled(self, auction_id: int) -> Optional[EngineEvent]:
        """Отмена collateral auction: лот остаётся в custody, долг — в debit_pool."""
        with self._state.transaction():
            previous = self._state.auction_settlements.get(auction_id)
            if previous is not None:
                return previous

            debt = self._treasury.release_collateral_auction(auction_id)
            if debt is None:
                return None
            cancelled = CollateralAuctionCancelled(
                auction_id=auction_id, collateral_type=debt.collateral_type, amount=debt.amount
            )
            self._state.auction_settlements[auction_id] = cancelled
            self._state.deposit_event(cancelled)

        logger.info("Collateral auction %d cancelled: lot %d %s kept", auction_id, debt.amount, debt.collateral_type)
        return cancelled

    # =========================================================================
    # PRIVILEGED
    # =========================================================================

    def set_collateral_params(
        self,
        origin: Any,
        collateral_type: CurrencyId,
        stability_fee: Change = NO_CHANGE,
        liquidation_ratio: Change = NO_CHANGE,
        liquidation_penalty: Change = NO_CHANGE,
        required_collateral_ratio: Change = NO_CHANGE,
        maximum_total_debit_value: Change = NO_CHANGE,
    ) -> RiskParameters:
        """Атомарное обновление параметров риска (одно событие на изменённое поле)."""
        update = CollateralParamsUpdate(
            stability_fee=stability_fee,
            liquidation_ratio=liquidation_ratio,
            liquidation_penalty=liquidation_penalty,
            required_collateral_ratio=required_collateral_ratio,
            maximum_total_debit_value=maximum_total_debit_value,
        )
        return self.apply_collateral_params_update(origin, collateral_type, update)

    def apply_collateral_params_update(
        self, origin: Any, collateral_type: CurrencyId, update: CollateralParamsUpdate
    ) -> RiskParameters:
        self._authority.ensure_root(origin)
        self._ensure_collateral(collateral_type)

        changed = update.changed_fields()
        new_params = update.apply_to(self.collateral_params(collateral_type))

        with self._state.transaction():
            self._state.risk_params[collateral_type] = new_params
            for name in changed:
                value = getattr(new_params, name)
                self._state.deposit_event(
                    CollateralParamUpdated(
                        collateral_type=collateral_type,
                        param=name,
                        value=None if value is None else str(value),
                    )
                )

        logger.info("Collateral params of %s updated: %s", collateral_type, sorted(changed))
        return new_params

    def set_collateral_params_from_payload(
        self, origin: Any, collateral_type: CurrencyId, payload: Mapping[str, Any]
    ) -> RiskParameters:
        """Governance payload: jsonschema-валидация и применение."""
        validate_collateral_params_update(dict(payload))
        return self.apply_collateral_params_update(
            origin, collateral_type, CollateralParamsUpdate.from_payload(payload)
        )

    def set_global_stability_fee(self, origin: Any, rate: Rate) -> None:
        self._authority.ensure_root(origin)
        with self._state.transaction():
            self._state.global_stability_fee = Rate.from_inner(rate.inner)
            self._state.deposit_event(GlobalStabilityFeeUpdated(rate=rate))
        logger.info("Global stability fee set to %s", rate)

    # =========================================================================
    # INTEREST / BLOCK HOOKS
    # =========================================================================

    def accumulate_interest(self) -> Dict[CurrencyId, ExchangeRate]:
        """
        Начисление stability fee.

        Для каждого типа: rate += rate × fee; прирост стоимости долга
        (increment × total debit) выпускается в surplus_pool treasury.
        Во время shutdown не выполняется.

        Returns:
            Новые DebitExchangeRate изменённых типов
        """
        if self._shutdown.is_shutdown():
            return {}

        updated: Dict[CurrencyId, ExchangeRate] = {}
        with self._state.transaction():
            for collateral_type in self._config.collateral_currency_ids:
                fee = self.get_stability_fee(collateral_type)
                if fee.is_zero():
                    continue

                rate = self.debit_exchange_rate(collateral_type)
                increment = rate.checked_mul(fee)
                new_rate = None if increment is None else rate.checked_add(increment)
                if new_rate is None:
                    raise ArithmeticOverflow(f"{collateral_type}: debit exchange rate overflow")

                total_debit = self.ledger.total_positions(collateral_type).debit
                issued = mul_int_or_overflow(increment, total_debit)

                self._state.debit_exchange_rates[collateral_type] = new_rate
                self._treasury.on_system_surplus(issued)
                self._state.deposit_event(
                    InterestAccrued(
                        collateral_type=collateral_type,
                        debit_exchange_rate=str(new_rate),
                        surplus_issued=issued,
                    )
                )
                updated[collateral_type] = new_rate
                logger.debug(
                    "Interest %s: fee=%s rate %s -> %s issued=%d",
                    collateral_type,
                    fee,
                    rate,
                    new_rate,
                    issued,
                )
        return updated

    def on_initialize(self) -> Dict[CurrencyId, ExchangeRate]:
        """Хук начала блока."""
        return self.accumulate_interest()

    def on_finalize(self) -> int:
        """Хук конца блока."""
        return self._treasury.on_finalize()
