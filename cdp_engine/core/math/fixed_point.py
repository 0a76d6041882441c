"""
Fixed Point — точные числовые типы с фиксированной точкой

Модуль обеспечивает бит-в-бит воспроизводимую арифметику для всех
экономических вычислений engine:
- FixedU128: беззнаковое число с 18 десятичными знаками, хранится как int
- Price / Rate / Ratio / ExchangeRate: семантические алиасы FixedU128
- Guards для балансов (u128) и знаковых дельт (i128)

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Никаких float: все операции выполняются над int
2. Деление всегда усекает (truncate toward zero)
3. Выход за диапазон u128 → None (checked_*) или ArithmeticOverflow
4. Все операции детерминированы и воспроизводимы
"""

from decimal import Decimal, InvalidOperation, localcontext
from functools import total_ordering
from typing import Any, Final, Optional, TypeVar

from pydantic_core import core_schema

from cdp_engine.core.errors import ArithmeticOverflow

# =============================================================================
# КОНСТАНТЫ ДИАПАЗОНОВ
# =============================================================================

# Количество десятичных знаков дробной части
DECIMALS: Final[int] = 18

# Множитель дробной части: FixedU128(1) хранится как 10**18
ACCURACY: Final[int] = 10**DECIMALS

# Диапазон балансов (u128)
U128_MAX: Final[int] = 2**128 - 1

# Диапазон знаковых дельт (i128)
I128_MIN: Final[int] = -(2**127)
I128_MAX: Final[int] = 2**127 - 1


F = TypeVar("F", bound="FixedU128")


# =============================================================================
# FIXED U128
# =============================================================================


@total_ordering
class FixedU128:
    """
    Беззнаковое число с фиксированной точкой (18 знаков).

    Значение = inner / 10**18, где inner ∈ [0, 2**128 - 1].
    Экземпляры неизменяемы; арифметика возвращает экземпляр того же типа.

    Examples:
        >>> FixedU128.checked_from_rational(3, 2)
        FixedU128(1.5)
        >>> Price.from_integer(10_000).checked_mul_int(10)
        100000
        >>> FixedU128.checked_from_rational(1, 0) is None
        True
    """

    __slots__ = ("_inner",)

    def __init__(self, inner: int):
        if isinstance(inner, bool) or not isinstance(inner, int):
            raise TypeError(f"{type(self).__name__} inner must be int, got {type(inner).__name__}")
        if inner < 0 or inner > U128_MAX:
            raise ArithmeticOverflow(f"{type(self).__name__} inner {inner} out of u128 range")
        self._inner = inner

    # -------------------------------------------------------------------------
    # Конструкторы
    # -------------------------------------------------------------------------

    @classmethod
    def from_inner(cls: type[F], inner: int) -> F:
        return cls(inner)

    @classmethod
    def from_integer(cls: type[F], value: int) -> F:
        """Целое число → fixed point. Переполнение → ArithmeticOverflow."""
        return cls(value * ACCURACY)

    @classmethod
    def zero(cls: type[F]) -> F:
        return cls(0)

    @classmethod
    def one(cls: type[F]) -> F:
        return cls(ACCURACY)

    @classmethod
    def max_value(cls: type[F]) -> F:
        return cls(U128_MAX)

    @classmethod
    def checked_from_rational(cls: type[F], numerator: int, denominator: int) -> Optional[F]:
        """
        Рациональное n/d с усечением.

        Returns:
            None если d == 0, аргументы отрицательны или результат вне u128
        """
        if denominator == 0 or numerator < 0 or denominator < 0:
            return None
        inner = numerator * ACCURACY // denominator
        if inner > U128_MAX:
            return None
        return cls(inner)

    @classmethod
    def saturating_from_rational(cls: type[F], numerator: int, denominator: int) -> F:
        """
        Рациональное n/d с насыщением до max_value.

        Используется для констант конфигурации и безразмерных ratio,
        никогда для денежных сумм.
        """
        if denominator == 0:
            raise ZeroDivisionError("saturating_from_rational: zero denominator")
        value = cls.checked_from_rational(numerator, denominator)
        return value if value is not None else cls.max_value()

    @classmethod
    def from_str(cls: type[F], text: str) -> F:
        """
        Точный разбор строки: десятичная ("1.5") или рациональная ("3/2").

        Десятичные знаки сверх 18 усекаются.

        Raises:
            ValueError: невалидная или отрицательная строка
            ArithmeticOverflow: значение вне u128
        """
        raw = text.strip()
        if "/" in raw:
            num_text, _, den_text = raw.partition("/")
            try:
                numerator, denominator = int(num_text), int(den_text)
            except ValueError:
                raise ValueError(f"Invalid rational literal: {text!r}")
            value = cls.checked_from_rational(numerator, denominator)
            if value is None:
                raise ValueError(f"Rational literal out of range: {text!r}")
            return value

        with localcontext() as ctx:
            ctx.prec = 80
            try:
                parsed = Decimal(raw)
            except InvalidOperation:
                raise ValueError(f"Invalid decimal literal: {text!r}")
            if not parsed.is_finite() or parsed < 0:
                raise ValueError(f"Fixed point literal must be finite and non-negative: {text!r}")
            inner = int(parsed.scaleb(DECIMALS))
        return cls(inner)

    # -------------------------------------------------------------------------
    # Доступ
    # -------------------------------------------------------------------------

    @property
    def inner(self) -> int:
        return self._inner

    def is_zero(self) -> bool:
        return self._inner == 0

    def is_one(self) -> bool:
        return self._inner == ACCURACY

    # -------------------------------------------------------------------------
    # Checked арифметика
    # -------------------------------------------------------------------------

    def checked_add(self: F, other: "FixedU128") -> Optional[F]:
        inner = self._inner + other.inner
        if inner > U128_MAX:
            return None
        return type(self)(inner)

    def checked_sub(self: F, other: "FixedU128") -> Optional[F]:
        inner = self._inner - other.inner
        if inner < 0:
            return None
        return type(self)(inner)

    def checked_mul(self: F, other: "FixedU128") -> Optional[F]:
        inner = self._inner * other.inner // ACCURACY
        if inner > U128_MAX:
            return None
        return type(self)(inner)

    def checked_div(self: F, other: "FixedU128") -> Optional[F]:
        if other.inner == 0:
            return None
        inner = self._inner * ACCURACY // other.inner
        if inner > U128_MAX:
            return None
        return type(self)(inner)

    def checked_mul_int(self, value: int) -> Optional[int]:
        """
        self × value с усечением до целого.

        Args:
            value: неотрицательный целый баланс

        Returns:
            Целый результат или None при выходе за u128
        """
        if value < 0:
            raise ValueError(f"checked_mul_int expects non-negative value, got {value}")
        result = self._inner * value // ACCURACY
        if result > U128_MAX:
            return None
        return result

    def saturating_mul_int(self, value: int) -> int:
        result = self.checked_mul_int(value)
        return U128_MAX if result is None else result

    def reciprocal(self: F) -> Optional[F]:
        if self._inner == 0:
            return None
        return type(self).checked_from_rational(ACCURACY, self._inner)

    # -------------------------------------------------------------------------
    # Сравнение и представление
    # -------------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FixedU128):
            return NotImplemented
        return self._inner == other.inner

    def __lt__(self, other: "FixedU128") -> bool:
        if not isinstance(other, FixedU128):
            return NotImplemented
        return self._inner < other.inner

    def __hash__(self) -> int:
        return hash(self._inner)

    # Immutable: копии не нужны
    def __copy__(self: F) -> F:
        return self

    def __deepcopy__(self: F, memo: dict) -> F:
        return self

    def __str__(self) -> str:
        whole, frac = divmod(self._inner, ACCURACY)
        if frac == 0:
            return str(whole)
        return f"{whole}.{frac:018d}".rstrip("0")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self})"

    # -------------------------------------------------------------------------
    # Pydantic
    # -------------------------------------------------------------------------

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._coerce,
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )

    @classmethod
    def _coerce(cls, value: Any) -> "FixedU128":
        if isinstance(value, cls):
            return value
        if isinstance(value, FixedU128):
            return cls(value.inner)
        if isinstance(value, str):
            try:
                return cls.from_str(value)
            except ArithmeticOverflow as e:
                raise ValueError(str(e))
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls.from_integer(value)
            except ArithmeticOverflow as e:
                raise ValueError(str(e))
        raise ValueError(
            f"{cls.__name__} accepts FixedU128, decimal/rational string or int, "
            f"got {type(value).__name__}"
        )


class Price(FixedU128):
    """Цена единицы collateral в stable currency."""


class Rate(FixedU128):
    """Доля/ставка: stability fee, liquidation penalty, exchange fee."""


class Ratio(FixedU128):
    """Отношение: collateral ratio, slippage, доля пула."""


class ExchangeRate(FixedU128):
    """Курс debit units → debt value (DebitExchangeRate)."""


# =============================================================================
# BALANCE GUARDS (u128 / i128)
# =============================================================================


def validate_balance(value: int, name: str = "balance") -> int:
    """
    Проверка, что значение является балансом u128.

    Raises:
        ArithmeticOverflow: значение отрицательное или больше U128_MAX
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be int, got {type(value).__name__}")
    if value < 0 or value > U128_MAX:
        raise ArithmeticOverflow(f"{name} {value} out of u128 range")
    return value


def validate_amount(value: int, name: str = "amount") -> int:
    """Проверка знаковой дельты i128."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be int, got {type(value).__name__}")
    if value < I128_MIN or value > I128_MAX:
        raise ArithmeticOverflow(f"{name} {value} out of i128 range")
    return value


def checked_add_balance(a: int, b: int) -> int:
    return validate_balance(a + b, "sum")


def checked_sub_balance(a: int, b: int) -> int:
    """a - b для балансов; отрицательный результат → ArithmeticOverflow."""
    return validate_balance(a - b, "difference")


def balance_from_amount_abs(amount: int) -> int:
    """|amount| i128 → баланс u128."""
    return validate_balance(abs(validate_amount(amount)), "abs(amount)")


def mul_int_or_overflow(value: FixedU128, balance: int) -> int:
    """
    value × balance для денежных путей.

    Raises:
        ArithmeticOverflow: результат вне u128 (никакого насыщения)
    """
    result = value.checked_mul_int(validate_balance(balance))
    if result is None:
        raise ArithmeticOverflow(f"{value!r} * {balance} overflows u128")
    return result
