"""Liquidation Strategy Selection — выбор пути ликвидации

Чистая функция от {глубина пула, граница slippage, изъятый collateral,
долг к покрытию}. Никакого состояния и случайности: одинаковый вход даёт
одинаковое решение на любой реплике.

Exchange path выбирается тогда и только тогда, когда:
1. пул (collateral, stable) имеет ненулевые резервы
2. seized / (reserve_in + seized) ≤ max_slippage_swap_with_exchange
3. ожидаемый выход свапа всего изъятого collateral ≥ долга

Иначе — auction path.
"""

from dataclasses import dataclass
from typing import Optional

from cdp_engine.core.domain.events import LiquidationStrategy
from cdp_engine.core.math import amm
from cdp_engine.core.math.fixed_point import Rate, Ratio


@dataclass(frozen=True)
class StrategyDecision:
    """Результат выбора стратегии."""

    strategy: LiquidationStrategy
    reason: str

    # Входные параметры для диагностики
    supply_pool: int
    target_pool: int
    seized_collateral: int
    debit_value_owed: int

    # Расчёт exchange path (None, если пул пуст)
    slippage: Optional[Ratio]
    expected_proceeds: int

    details: str

    @property
    def use_exchange(self) -> bool:
        return self.strategy == LiquidationStrategy.EXCHANGE


class LiquidationStrategySelector:
    """Выбор стратегии ликвидации.

    Порядок проверок:
    1. Пустой пул → auction
    2. Slippage выше границы → auction
    3. Выход свапа меньше долга → auction
    4. Иначе → exchange
    """

    def __init__(self, max_slippage: Ratio, exchange_fee: Rate):
        self.max_slippage = max_slippage
        self.exchange_fee = exchange_fee

    def evaluate(
        self,
        supply_pool: int,
        target_pool: int,
        seized_collateral: int,
        debit_value_owed: int,
    ) -> StrategyDecision:
        """Оценка пути ликвидации.

        Args:
            supply_pool: резерв collateral в пуле (collateral, stable)
            target_pool: резерв stable в том же пуле
            seized_collateral: изъятый collateral
            debit_value_owed: долг позиции в stable currency

        Returns:
            StrategyDecision
        """
        def decide(strategy, reason, slippage, proceeds, details):
            return StrategyDecision(
                strategy=strategy,
                reason=reason,
                supply_pool=supply_pool,
                target_pool=target_pool,
                seized_collateral=seized_collateral,
                debit_value_owed=debit_value_owed,
                slippage=slippage,
                expected_proceeds=proceeds,
                details=details,
            )

        # 1. Пул
        if supply_pool == 0 or target_pool == 0:
            return decide(
                LiquidationStrategy.AUCTION,
                "pool_empty",
                None,
                0,
                f"No liquidity: pool ({supply_pool}, {target_pool})",
            )

        # 2. Slippage
        slippage = amm.get_exchange_slippage(supply_pool, seized_collateral)
        if slippage is None or slippage > self.max_slippage:
            return decide(
                LiquidationStrategy.AUCTION,
                "slippage_exceeded",
                slippage,
                0,
                f"Slippage {slippage} > max {self.max_slippage}",
            )

        # 3. Выход свапа
        proceeds = amm.get_target_amount(supply_pool, target_pool, seized_collateral, self.exchange_fee)
        if proceeds < debit_value_owed:
            return decide(
                LiquidationStrategy.AUCTION,
                "insufficient_proceeds",
                slippage,
                proceeds,
                f"Swap output {proceeds} < debit value {debit_value_owed}",
            )

        return decide(
            LiquidationStrategy.EXCHANGE,
            "exchange_viable",
            slippage,
            proceeds,
            f"Swap output {proceeds} covers {debit_value_owed}, slippage {slippage}",
        )


def select_liquidation_strategy(
    supply_pool: int,
    target_pool: int,
    seized_collateral: int,
    debit_value_owed: int,
    max_slippage: Ratio,
    exchange_fee: Rate,
) -> StrategyDecision:
    return LiquidationStrategySelector(max_slippage, exchange_fee).evaluate(
        supply_pool, target_pool, seized_collateral, debit_value_owed
    )
