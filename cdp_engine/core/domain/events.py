"""
Events — записи событий engine и результат ликвидации

Все события — immutable Pydantic модели с дискриминатором `kind`.
События накапливаются в WorldState.events в порядке применения и
откатываются вместе с транзакцией.

Результат ликвидации — tagged union:
- SettledImmediately{proceeds}: exchange path, долг закрыт синхронно
- PendingAuction{auction_id}: auction path, расчёт через callback
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from cdp_engine.core.domain.currency import AccountId, CurrencyId
from cdp_engine.core.math.fixed_point import Rate


# =============================================================================
# LIQUIDATION STRATEGY / OUTCOME
# =============================================================================


class LiquidationStrategy(str, Enum):
    """Путь ликвидации."""

    EXCHANGE = "Exchange"
    AUCTION = "Auction"


@dataclass(frozen=True)
class SettledImmediately:
    """Exchange path: залог продан в AMM, выручка в surplus_pool."""

    proceeds: int

    @property
    def strategy(self) -> LiquidationStrategy:
        return LiquidationStrategy.EXCHANGE


@dataclass(frozen=True)
class PendingAuction:
    """Auction path: создан collateral auction, долг ждёт callback."""

    auction_id: int

    @property
    def strategy(self) -> LiquidationStrategy:
        return LiquidationStrategy.AUCTION


LiquidationOutcome = Union[SettledImmediately, PendingAuction]


# =============================================================================
# EVENT RECORDS
# =============================================================================


class EngineEvent(BaseModel):
    """Базовая запись события."""

    model_config = {"frozen": True}


class PositionUpdated(EngineEvent):
    kind: Literal["PositionUpdated"] = "PositionUpdated"
    owner: AccountId
    collateral_type: CurrencyId
    collateral_adjustment: int
    debit_adjustment: int


class LiquidateUnsafeCDP(EngineEvent):
    kind: Literal["LiquidateUnsafeCDP"] = "LiquidateUnsafeCDP"
    collateral_type: CurrencyId
    owner: AccountId
    collateral_seized: int = Field(..., ge=0)
    debit_value_owed: int = Field(..., ge=0)
    strategy: LiquidationStrategy


class SettleCDPInDebit(EngineEvent):
    kind: Literal["SettleCDPInDebit"] = "SettleCDPInDebit"
    collateral_type: CurrencyId
    owner: AccountId
    collateral_confiscated: int = Field(..., ge=0)
    debit_value: int = Field(..., ge=0)
    collateral_refunded: int = Field(..., ge=0)


class CollateralParamUpdated(EngineEvent):
    """Одно изменённое поле RiskParameters (value=None — проверка отключена)."""

    kind: Literal["CollateralParamUpdated"] = "CollateralParamUpdated"
    collateral_type: CurrencyId
    param: str
    value: Optional[str] = None


class GlobalStabilityFeeUpdated(EngineEvent):
    kind: Literal["GlobalStabilityFeeUpdated"] = "GlobalStabilityFeeUpdated"
    rate: Rate


class InterestAccrued(EngineEvent):
    kind: Literal["InterestAccrued"] = "InterestAccrued"
    collateral_type: CurrencyId
    debit_exchange_rate: str
    surplus_issued: int = Field(..., ge=0)


class CollateralAuctionCreated(EngineEvent):
    kind: Literal["CollateralAuctionCreated"] = "CollateralAuctionCreated"
    auction_id: int = Field(..., ge=0)
    collateral_type: CurrencyId
    amount: int = Field(..., ge=0)
    target: int = Field(..., ge=0)
    refund_recipient: AccountId


class CollateralAuctionSettled(EngineEvent):
    kind: Literal["CollateralAuctionSettled"] = "CollateralAuctionSettled"
    auction_id: int = Field(..., ge=0)
    collateral_type: CurrencyId
    payment: int = Field(..., ge=0)
    debit_written_off: int = Field(..., ge=0)
    surplus: int = Field(..., ge=0)


class CollateralAuctionCancelled(EngineEvent):
    kind: Literal["CollateralAuctionCancelled"] = "CollateralAuctionCancelled"
    auction_id: int = Field(..., ge=0)
    collateral_type: CurrencyId
    amount: int = Field(..., ge=0)


class SurplusDebitOffset(EngineEvent):
    kind: Literal["SurplusDebitOffset"] = "SurplusDebitOffset"
    amount: int = Field(..., ge=0)


class LiquidityAdded(EngineEvent):
    kind: Literal["LiquidityAdded"] = "LiquidityAdded"
    provider: AccountId
    currency_0: CurrencyId
    amount_0: int = Field(..., ge=0)
    currency_1: CurrencyId
    amount_1: int = Field(..., ge=0)
    share_increment: int = Field(..., ge=0)


class LiquidityRemoved(EngineEvent):
    kind: Literal["LiquidityRemoved"] = "LiquidityRemoved"
    provider: AccountId
    currency_0: CurrencyId
    amount_0: int = Field(..., ge=0)
    currency_1: CurrencyId
    amount_1: int = Field(..., ge=0)
    share_decrement: int = Field(..., ge=0)


class Swapped(EngineEvent):
    kind: Literal["Swapped"] = "Swapped"
    trader: AccountId
    path: List[CurrencyId]
    supply_amount: int = Field(..., ge=0)
    target_amount: int = Field(..., ge=0)


class ShutdownPhaseChanged(EngineEvent):
    kind: Literal["ShutdownPhaseChanged"] = "ShutdownPhaseChanged"
    from_phase: str
    to_phase: str


class CollateralRefunded(EngineEvent):
    kind: Literal["CollateralRefunded"] = "CollateralRefunded"
    who: AccountId
    stable_amount: int = Field(..., ge=0)
    refunds: Dict[CurrencyId, int] = Field(default_factory=dict)
