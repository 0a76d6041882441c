"""
Position — модель CDP позиции

Immutable Pydantic модели позиции и её сводки.
Позиция хранит collateral (в единицах актива) и debit (во внутренних debit
units). Debt value = debit × DebitExchangeRate[collateral_type].
"""

from typing import Optional

from pydantic import BaseModel, Field

from cdp_engine.core.domain.currency import AccountId, CurrencyId
from cdp_engine.core.math.fixed_point import U128_MAX, Ratio


# =============================================================================
# POSITION MODEL
# =============================================================================


class Position(BaseModel):
    """
    Позиция (collateral_type, owner).

    Immutable модель (frozen=True): любая корректировка создаёт новый экземпляр.
    Позиция с нулевыми collateral и debit считается отсутствующей.
    """

    collateral: int = Field(0, ge=0, le=U128_MAX, description="Залог в единицах collateral")
    debit: int = Field(0, ge=0, le=U128_MAX, description="Долг во внутренних debit units")

    model_config = {"frozen": True}

    def is_empty(self) -> bool:
        return self.collateral == 0 and self.debit == 0

    def has_debit(self) -> bool:
        return self.debit > 0


class PositionSummary(BaseModel):
    """
    Сводка позиции после корректировки.

    collateral_ratio = None, если цена недоступна; Ratio.max_value()
    для позиции без долга.
    """

    owner: AccountId
    collateral_type: CurrencyId
    collateral: int = Field(..., ge=0)
    debit: int = Field(..., ge=0)
    debit_value: int = Field(..., ge=0, description="Долг в stable currency")
    collateral_ratio: Optional[Ratio] = None

    model_config = {"frozen": True}
