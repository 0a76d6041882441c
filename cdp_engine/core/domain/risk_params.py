"""
Risk Parameters — параметры риска collateral type

RiskParameters изменяются только привилегированным атомарным обновлением.
Каждое поле обновления — явный вариант Change:
- NoChange: поле не трогается
- NewValue(x): поле получает x (для Optional полей x может быть None —
  это отключает соответствующую проверку)
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, Generic, Mapping, Optional, TypeVar, Union

from pydantic import BaseModel, Field

from cdp_engine.core.math.fixed_point import U128_MAX, Rate, Ratio

T = TypeVar("T")


# =============================================================================
# RISK PARAMETERS
# =============================================================================


class RiskParameters(BaseModel):
    """
    Параметры риска одного collateral type.

    Незаданное Optional поле отключает проверку. Тип без сохранённых
    параметров эквивалентен RiskParameters() (cap = 0).
    """

    stability_fee: Optional[Rate] = Field(None, description="Ставка за блок поверх глобальной")
    liquidation_ratio: Optional[Ratio] = Field(None, description="Порог ликвидации")
    liquidation_penalty: Optional[Rate] = Field(None, description="Надбавка к target аукциона")
    required_collateral_ratio: Optional[Ratio] = Field(
        None, description="Минимальный ratio для debt-increasing корректировок"
    )
    maximum_total_debit_value: int = Field(
        0, ge=0, le=U128_MAX, description="Debt ceiling по типу (stable currency)"
    )

    model_config = {"frozen": True}


# =============================================================================
# CHANGE VARIANTS
# =============================================================================


@dataclass(frozen=True)
class NoChange:
    """Поле не изменяется."""


@dataclass(frozen=True)
class NewValue(Generic[T]):
    """Поле получает новое значение."""

    value: T


Change = Union[NoChange, NewValue]

NO_CHANGE = NoChange()


@dataclass(frozen=True)
class CollateralParamsUpdate:
    """
    Атомарный батч изменений RiskParameters.

    Порядок применения не важен: все поля применяются одним шагом.
    """

    stability_fee: Change = NO_CHANGE
    liquidation_ratio: Change = NO_CHANGE
    liquidation_penalty: Change = NO_CHANGE
    required_collateral_ratio: Change = NO_CHANGE
    maximum_total_debit_value: Change = NO_CHANGE

    def changed_fields(self) -> Dict[str, Any]:
        """Имена и новые значения полей с NewValue."""
        changed = {}
        for f in fields(self):
            change = getattr(self, f.name)
            if isinstance(change, NewValue):
                changed[f.name] = change.value
            elif not isinstance(change, NoChange):
                raise TypeError(f"{f.name}: expected NoChange or NewValue, got {type(change).__name__}")
        return changed

    def apply_to(self, params: RiskParameters) -> RiskParameters:
        """
        Применение батча к текущим параметрам.

        Новые значения проходят валидацию RiskParameters целиком, поэтому
        невалидный батч не применяется частично.
        """
        merged = params.model_dump()
        merged.update(self.changed_fields())
        return RiskParameters.model_validate(merged)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CollateralParamsUpdate":
        """
        Построение батча из JSON payload.

        Формат поля: "no_change" | {"new_value": <value | null>}.
        Отсутствующее поле эквивалентно "no_change".
        """
        new_values = {}
        for name, entry in payload.items():
            if name not in RiskParameters.model_fields:
                raise ValueError(f"Unknown risk parameter: {name}")
            if entry == "no_change":
                continue
            new_values[name] = entry["new_value"]

        parsed = RiskParameters.model_validate(new_values)
        return cls(**{name: NewValue(getattr(parsed, name)) for name in new_values})
