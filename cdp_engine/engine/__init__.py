"""Risk Engine — параметры риска, ликвидация и settlement.

- strategy: детерминированный выбор пути ликвидации (exchange / auction)
- cdp_engine: оркестратор позиций, ликвидаций и auction callbacks
"""

from .cdp_engine import CDPEngine
from .strategy import LiquidationStrategySelector, StrategyDecision, select_liquidation_strategy

__all__ = [
    "CDPEngine",
    "LiquidationStrategySelector",
    "StrategyDecision",
    "select_liquidation_strategy",
]
