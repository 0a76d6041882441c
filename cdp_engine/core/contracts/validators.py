"""
JSON Schema контракты CDP engine

Внешние payload'ы (конфигурация engine, governance-обновление
RiskParameters) проверяются по схемам до разбора в pydantic-модели:
схема ловит форму данных, модель — семантику.

Схемы (cdp_engine/core/contracts/schema/):
- engine_config.json
- collateral_params_update.json
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Final, Iterator, List, Mapping, Optional

import jsonschema
from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match

logger = logging.getLogger(__name__)

SCHEMA_DIR: Final[Path] = Path(__file__).parent / "schema"

ENGINE_CONFIG: Final = "engine_config"
COLLATERAL_PARAMS_UPDATE: Final = "collateral_params_update"


# =============================================================================
# SCHEMA LOADER
# =============================================================================


class SchemaLoader:
    """Чтение схем из package data; схема и её validator кэшируются по имени."""

    def __init__(self, schema_dir: Optional[Path] = None):
        self._schema_dir = schema_dir or SCHEMA_DIR
        if not self._schema_dir.is_dir():
            raise RuntimeError(f"Contract schema directory missing: {self._schema_dir}")
        self._schemas: Dict[str, Dict[str, Any]] = {}
        self._validators: Dict[str, Draft202012Validator] = {}

    def load_schema(self, schema_name: str) -> Dict[str, Any]:
        """
        Raises:
            FileNotFoundError: схемы с таким именем нет
            ValueError: файл не является корректной draft 2020-12 схемой
        """
        cached = self._schemas.get(schema_name)
        if cached is not None:
            return cached

        path = self._schema_dir / f"{schema_name}.json"
        if not path.is_file():
            raise FileNotFoundError(f"No contract schema '{schema_name}' in {self._schema_dir}")
        schema = json.loads(path.read_text(encoding="utf-8"))
        try:
            Draft202012Validator.check_schema(schema)
        except jsonschema.SchemaError as e:
            raise ValueError(f"Contract schema '{schema_name}' is malformed: {e.message}") from e

        self._schemas[schema_name] = schema
        return schema

    def validator_for(self, schema_name: str) -> Draft202012Validator:
        validator = self._validators.get(schema_name)
        if validator is None:
            validator = Draft202012Validator(self.load_schema(schema_name))
            self._validators[schema_name] = validator
        return validator


_LOADER = SchemaLoader()


# =============================================================================
# CONTRACT VALIDATORS
# =============================================================================


class ContractValidator:
    """Проверка payload'а по одному контракту."""

    contract: str = ""

    def __init__(self, loader: Optional[SchemaLoader] = None):
        self._validator = (loader or _LOADER).validator_for(self.contract)

    def iter_errors(self, data: Mapping[str, Any]) -> Iterator[jsonschema.ValidationError]:
        """Все нарушения, упорядоченные по пути в payload."""
        errors = self._validator.iter_errors(data)
        return iter(sorted(errors, key=lambda e: [str(p) for p in e.absolute_path]))

    def is_valid(self, data: Mapping[str, Any]) -> bool:
        return self._validator.is_valid(data)

    def validate(self, data: Mapping[str, Any]) -> None:
        """
        Raises:
            jsonschema.ValidationError: наиболее релевантное нарушение контракта
        """
        errors: List[jsonschema.ValidationError] = list(self.iter_errors(data))
        if not errors:
            return
        error = best_match(errors)
        logger.warning(
            "Rejected %s payload at %s: %s (%d violation(s))",
            self.contract,
            "/".join(str(p) for p in error.absolute_path) or "<root>",
            error.message,
            len(errors),
        )
        raise error


class EngineConfigValidator(ContractValidator):
    """Стартовая конфигурация: currencies, trading pairs, лимиты."""

    contract = ENGINE_CONFIG


class CollateralParamsUpdateValidator(ContractValidator):
    """Governance payload: каждое поле RiskParameters — no_change или new_value."""

    contract = COLLATERAL_PARAMS_UPDATE


def validate_engine_config(data: Mapping[str, Any]) -> None:
    EngineConfigValidator().validate(data)


def validate_collateral_params_update(data: Mapping[str, Any]) -> None:
    CollateralParamsUpdateValidator().validate(data)
