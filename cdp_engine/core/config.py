"""
Engine Config — конфигурация CDP risk engine

EngineConfig — immutable Pydantic модель. JSON конфигурация проходит
jsonschema-валидацию (contracts/schema/engine_config.json) до построения модели.

ПАРАМЕТРЫ ПО УМОЛЧАНИЮ:
- default_debit_exchange_rate = 0.1
- default_liquidation_ratio = 1.5 (для типа без явного liquidation_ratio)
- default_liquidation_penalty = 0.1 (для типа без явного liquidation_penalty)
- minimum_debit_value = 2
- max_slippage_swap_with_exchange = 0.05
- exchange_fee = 0.003, trading_path_limit = 3
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Final, List, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from cdp_engine.core.contracts import validate_engine_config
from cdp_engine.core.domain.currency import AccountId, CurrencyId, TradingPair
from cdp_engine.core.math.fixed_point import ExchangeRate, Rate, Ratio

logger = logging.getLogger(__name__)


# =============================================================================
# DEFAULTS
# =============================================================================

DEFAULT_DEBIT_EXCHANGE_RATE: Final[ExchangeRate] = ExchangeRate.saturating_from_rational(1, 10)
DEFAULT_LIQUIDATION_RATIO: Final[Ratio] = Ratio.saturating_from_rational(3, 2)
DEFAULT_LIQUIDATION_PENALTY: Final[Rate] = Rate.saturating_from_rational(1, 10)
MINIMUM_DEBIT_VALUE: Final[int] = 2
MAX_SLIPPAGE_SWAP_WITH_EXCHANGE: Final[Ratio] = Ratio.saturating_from_rational(5, 100)
EXCHANGE_FEE: Final[Rate] = Rate.saturating_from_rational(3, 1000)
TRADING_PATH_LIMIT: Final[int] = 3

TREASURY_ACCOUNT: Final[str] = "cdp-treasury"
EXCHANGE_ACCOUNT: Final[str] = "dex"


# =============================================================================
# ENGINE CONFIG
# =============================================================================


class EngineConfig(BaseModel):
    """
    Конфигурация engine.

    Immutable модель (frozen=True). Fixed-point поля принимают точные строки
    ("1.5", "3/2"), int или экземпляры FixedU128.
    """

    stable_currency_id: CurrencyId = Field(..., min_length=1)
    native_currency_id: CurrencyId = Field(..., min_length=1)
    collateral_currency_ids: List[CurrencyId] = Field(default_factory=list)

    default_debit_exchange_rate: ExchangeRate = DEFAULT_DEBIT_EXCHANGE_RATE
    default_liquidation_ratio: Ratio = DEFAULT_LIQUIDATION_RATIO
    default_liquidation_penalty: Rate = DEFAULT_LIQUIDATION_PENALTY
    minimum_debit_value: int = Field(MINIMUM_DEBIT_VALUE, ge=0)

    max_slippage_swap_with_exchange: Ratio = MAX_SLIPPAGE_SWAP_WITH_EXCHANGE
    exchange_fee: Rate = EXCHANGE_FEE
    trading_path_limit: int = Field(TRADING_PATH_LIMIT, ge=2)
    enabled_trading_pairs: List[TradingPair] = Field(default_factory=list)

    treasury_account: AccountId = TREASURY_ACCOUNT
    exchange_account: AccountId = EXCHANGE_ACCOUNT

    model_config = {"frozen": True}

    @field_validator("enabled_trading_pairs", mode="before")
    @classmethod
    def coerce_trading_pairs(cls, value: Any) -> Any:
        """Пары из JSON задаются как [a, b] в любом порядке."""
        if not isinstance(value, (list, tuple)):
            return value
        coerced = []
        for item in value:
            if isinstance(item, (list, tuple)) and len(item) == 2:
                coerced.append(TradingPair.of(item[0], item[1]))
            else:
                coerced.append(item)
        return coerced

    @field_validator("exchange_fee")
    @classmethod
    def validate_exchange_fee(cls, v: Rate) -> Rate:
        if v >= Rate.one():
            raise ValueError(f"exchange_fee must be < 1, got {v}")
        return v

    @model_validator(mode="after")
    def validate_currencies(self) -> "EngineConfig":
        if self.stable_currency_id in self.collateral_currency_ids:
            raise ValueError(f"stable currency {self.stable_currency_id} cannot be a collateral type")
        if len(set(self.collateral_currency_ids)) != len(self.collateral_currency_ids):
            raise ValueError("collateral_currency_ids must be unique")
        if self.treasury_account == self.exchange_account:
            raise ValueError("treasury_account and exchange_account must differ")
        return self

    def is_collateral(self, currency_id: CurrencyId) -> bool:
        return currency_id in self.collateral_currency_ids

    def is_trading_pair_enabled(self, pair: TradingPair) -> bool:
        return pair in self.enabled_trading_pairs


# =============================================================================
# LOADING
# =============================================================================


def engine_config_from_dict(data: Dict[str, Any]) -> EngineConfig:
    """
    Построение конфигурации из JSON-совместимого dict.

    Raises:
        jsonschema.ValidationError: нарушение контракта engine_config
        pydantic.ValidationError: нарушение семантических ограничений
    """
    validate_engine_config(data)
    return EngineConfig.model_validate(data)


def load_engine_config(path: Union[str, Path]) -> EngineConfig:
    """Загрузка конфигурации из JSON файла."""
    config_path = Path(path)
    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    config = engine_config_from_dict(data)
    logger.info(
        "Loaded engine config from %s: stable=%s collaterals=%s",
        config_path,
        config.stable_currency_id,
        config.collateral_currency_ids,
    )
    return config
