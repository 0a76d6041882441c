"""
Domain models and value objects.

Contains CDP domain entities: TradingPair, Position, RiskParameters, events.
"""

from cdp_engine.core.domain.currency import AccountId, CurrencyId, TradingPair
from cdp_engine.core.domain.events import (
    CollateralAuctionCancelled,
    CollateralAuctionCreated,
    CollateralAuctionSettled,
    CollateralParamUpdated,
    CollateralRefunded,
    EngineEvent,
    GlobalStabilityFeeUpdated,
    InterestAccrued,
    LiquidateUnsafeCDP,
    LiquidationOutcome,
    LiquidationStrategy,
    LiquidityAdded,
    LiquidityRemoved,
    PendingAuction,
    PositionUpdated,
    SettleCDPInDebit,
    SettledImmediately,
    ShutdownPhaseChanged,
    SurplusDebitOffset,
    Swapped,
)
from cdp_engine.core.domain.position import Position, PositionSummary
from cdp_engine.core.domain.risk_params import (
    NO_CHANGE,
    Change,
    CollateralParamsUpdate,
    NewValue,
    NoChange,
    RiskParameters,
)

__all__ = [
    # Currency
    "CurrencyId",
    "AccountId",
    "TradingPair",
    # Position
    "Position",
    "PositionSummary",
    # Risk parameters
    "RiskParameters",
    "Change",
    "NoChange",
    "NewValue",
    "NO_CHANGE",
    "CollateralParamsUpdate",
    # Liquidation outcome
    "LiquidationStrategy",
    "LiquidationOutcome",
    "SettledImmediately",
    "PendingAuction",
    # Events
    "EngineEvent",
    "PositionUpdated",
    "LiquidateUnsafeCDP",
    "SettleCDPInDebit",
    "CollateralParamUpdated",
    "GlobalStabilityFeeUpdated",
    "InterestAccrued",
    "CollateralAuctionCreated",
    "CollateralAuctionSettled",
    "CollateralAuctionCancelled",
    "SurplusDebitOffset",
    "LiquidityAdded",
    "LiquidityRemoved",
    "Swapped",
    "ShutdownPhaseChanged",
    "CollateralRefunded",
]
