"""
Errors — иерархия ошибок CDP engine

Все entry points детерминированы и не оставляют частичного состояния:
ошибка означает, что ни одна запись не была применена.

Категории:
- ValidationFailure: вход отклонён до мутации, caller может исправить вход
- StateFailure: зависит от контекста (цена, фаза shutdown), можно повторить позже
- ArithmeticOverflow: выход за диапазон u128/i128, операция отклоняется целиком
- BadOrigin: вызов без привилегированной capability
- InvariantViolation: нарушение внутреннего инварианта (не вход пользователя)
"""


class CDPEngineError(Exception):
    """
    Базовая ошибка engine.

    code — стабильный идентификатор ошибки (имя класса), пригодный
    для сравнения в тестах и для записи в журнал событий.
    """

    def __init__(self, message: str = ""):
        self.code = type(self).__name__
        super().__init__(message or self.code)


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationFailure(CDPEngineError):
    """Вход отклонён до любой мутации."""


class BelowRequiredCollateralRatio(ValidationFailure):
    pass


class BelowLiquidationRatio(ValidationFailure):
    pass


class ExceedDebitValueHardCap(ValidationFailure):
    pass


class RemainDebitValueTooSmall(ValidationFailure):
    pass


class NoDebitValue(ValidationFailure):
    pass


class AlreadySafe(ValidationFailure):
    pass


class CollateralTooLow(ValidationFailure):
    pass


class DebitTooLow(ValidationFailure):
    pass


class InvalidCollateralType(ValidationFailure):
    pass


class InvalidAmount(ValidationFailure):
    pass


class InsufficientBalance(ValidationFailure):
    pass


class CollateralNotEnough(ValidationFailure):
    pass


class SurplusPoolNotEnough(ValidationFailure):
    pass


class DebitPoolNotEnough(ValidationFailure):
    pass


class InvalidLiquidityIncrement(ValidationFailure):
    pass


class ExcessiveSlippage(ValidationFailure):
    pass


class NotAllowedTradingPair(ValidationFailure):
    pass


class InvalidTradingPathLength(ValidationFailure):
    pass


class InsufficientLiquidity(ValidationFailure):
    pass


class InsufficientShares(ValidationFailure):
    pass


# =============================================================================
# STATE ERRORS
# =============================================================================


class StateFailure(CDPEngineError):
    """Операция неприменима в текущем состоянии системы."""


class InvalidFeedPrice(StateFailure):
    pass


class MustBeforeShutdown(StateFailure):
    pass


class MustAfterShutdown(StateFailure):
    pass


class AlreadyShutdown(StateFailure):
    pass


class CanNotRefund(StateFailure):
    pass


class ExistPotentialSurplus(StateFailure):
    pass


class ExistUnhandledDebit(StateFailure):
    pass


class UnknownAuction(StateFailure):
    pass


# =============================================================================
# OTHER
# =============================================================================


class BadOrigin(CDPEngineError):
    """Вызов привилегированной операции без валидной capability."""


class ArithmeticOverflow(CDPEngineError):
    """
    Переполнение или потеря точности в финансовом вычислении.

    Финансовые пути никогда не сатурируют молча: операция отклоняется
    целиком (fail closed).
    """


class InvariantViolation(CDPEngineError):
    """
    Нарушение внутреннего инварианта.

    Недостижимо при корректных предварительных проверках; никогда не
    вызывается из-за входа пользователя.
    """
