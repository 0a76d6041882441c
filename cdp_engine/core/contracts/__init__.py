"""
Contract Validation Module

Модуль для валидации JSON контрактов CDP engine.
"""

from .validators import (
    CollateralParamsUpdateValidator,
    ContractValidator,
    EngineConfigValidator,
    SchemaLoader,
    validate_collateral_params_update,
    validate_engine_config,
)

__all__ = [
    # Classes
    "SchemaLoader",
    "ContractValidator",
    "EngineConfigValidator",
    "CollateralParamsUpdateValidator",
    # Functions
    "validate_engine_config",
    "validate_collateral_params_update",
]
