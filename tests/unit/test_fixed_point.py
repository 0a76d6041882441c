"""
Тесты для модуля Fixed Point

Проверяет:
1. Конструкторы (rational, строки, целые)
2. Checked арифметику и переполнение u128
3. Усечение при умножении на баланс
4. Balance guards (u128 / i128)
5. Интеграцию с Pydantic
"""

import copy

import pytest
from pydantic import ValidationError

from cdp_engine.core.domain.risk_params import RiskParameters
from cdp_engine.core.errors import ArithmeticOverflow
from cdp_engine.core.math.fixed_point import (
    ACCURACY,
    I128_MIN,
    U128_MAX,
    ExchangeRate,
    FixedU128,
    Price,
    Rate,
    Ratio,
    balance_from_amount_abs,
    checked_add_balance,
    checked_sub_balance,
    mul_int_or_overflow,
    validate_amount,
    validate_balance,
)

# =============================================================================
# КОНСТРУКТОРЫ
# =============================================================================


class TestConstructors:
    def test_from_rational(self):
        value = FixedU128.checked_from_rational(3, 2)
        assert value.inner == 3 * ACCURACY // 2
        assert str(value) == "1.5"

    def test_from_rational_zero_denominator(self):
        assert FixedU128.checked_from_rational(1, 0) is None

    def test_from_rational_negative(self):
        assert FixedU128.checked_from_rational(-1, 2) is None

    def test_from_rational_overflow(self):
        """n/d вне u128 → None; saturating → max_value."""
        assert FixedU128.checked_from_rational(U128_MAX, 1) is None
        assert FixedU128.saturating_from_rational(U128_MAX, 1) == FixedU128.max_value()

    def test_saturating_keeps_subclass(self):
        assert isinstance(Ratio.saturating_from_rational(3, 2), Ratio)
        assert isinstance(Ratio.saturating_from_rational(U128_MAX, 1), Ratio)

    def test_from_str_decimal_and_rational(self):
        assert Rate.from_str("0.1") == Rate.checked_from_rational(1, 10)
        assert Ratio.from_str("3/2") == Ratio.checked_from_rational(3, 2)
        assert Price.from_str("10000") == Price.from_integer(10_000)

    def test_from_str_truncates_extra_decimals(self):
        value = FixedU128.from_str("1.1234567890123456789")
        assert value.inner == 1_123_456_789_012_345_678

    @pytest.mark.parametrize("text", ["-1", "abc", "1/0", "inf"])
    def test_from_str_invalid(self, text):
        with pytest.raises(ValueError):
            FixedU128.from_str(text)

    def test_inner_validation(self):
        with pytest.raises(ArithmeticOverflow):
            FixedU128(-1)
        with pytest.raises(ArithmeticOverflow):
            FixedU128(U128_MAX + 1)
        with pytest.raises(TypeError):
            FixedU128(True)
        with pytest.raises(TypeError):
            FixedU128(1.5)


# =============================================================================
# АРИФМЕТИКА
# =============================================================================


class TestCheckedArithmetic:
    def test_add_sub(self):
        one = FixedU128.one()
        half = FixedU128.checked_from_rational(1, 2)
        assert one.checked_add(half) == FixedU128.checked_from_rational(3, 2)
        assert one.checked_sub(half) == half

    def test_add_overflow(self):
        assert FixedU128.max_value().checked_add(FixedU128.from_inner(1)) is None

    def test_sub_underflow(self):
        assert FixedU128.zero().checked_sub(FixedU128.one()) is None

    def test_mul_div(self):
        value = Ratio.checked_from_rational(3, 2)
        assert value.checked_mul(Ratio.from_integer(2)) == Ratio.from_integer(3)
        assert Ratio.from_integer(3).checked_div(Ratio.from_integer(2)) == value

    def test_div_by_zero(self):
        assert FixedU128.one().checked_div(FixedU128.zero()) is None

    def test_result_keeps_type(self):
        rate = ExchangeRate.checked_from_rational(1, 10)
        assert isinstance(rate.checked_mul(Rate.checked_from_rational(1, 10)), ExchangeRate)

    def test_reciprocal(self):
        assert Price.from_integer(2).reciprocal() == Price.checked_from_rational(1, 2)
        assert Price.zero().reciprocal() is None

    def test_ordering_across_aliases(self):
        assert Rate.checked_from_rational(1, 10) < Ratio.checked_from_rational(3, 2)
        assert Ratio.from_integer(1) == Rate.one()
        assert Ratio.max_value() > Ratio.from_integer(10**12)


class TestMulInt:
    def test_truncates(self):
        third = Rate.checked_from_rational(1, 3)
        assert third.checked_mul_int(10) == 3

    def test_debit_value(self):
        """500 debit × 0.1 = 50."""
        assert ExchangeRate.checked_from_rational(1, 10).checked_mul_int(500) == 50

    def test_overflow(self):
        two = Price.from_integer(2)
        assert two.checked_mul_int(U128_MAX) is None
        assert two.saturating_mul_int(U128_MAX) == U128_MAX

    def test_mul_int_or_overflow_fails_closed(self):
        with pytest.raises(ArithmeticOverflow):
            mul_int_or_overflow(Price.from_integer(2), U128_MAX)

    def test_negative_value_rejected(self):
        with pytest.raises(ValueError):
            Rate.one().checked_mul_int(-1)


# =============================================================================
# BALANCE GUARDS
# =============================================================================


class TestBalanceGuards:
    def test_validate_balance(self):
        assert validate_balance(U128_MAX) == U128_MAX
        with pytest.raises(ArithmeticOverflow):
            validate_balance(-1)
        with pytest.raises(ArithmeticOverflow):
            validate_balance(U128_MAX + 1)

    def test_validate_amount(self):
        assert validate_amount(I128_MIN) == I128_MIN
        with pytest.raises(ArithmeticOverflow):
            validate_amount(I128_MIN - 1)
        with pytest.raises(ArithmeticOverflow):
            validate_amount(2**127)

    def test_checked_balance_ops(self):
        assert checked_add_balance(1, 2) == 3
        with pytest.raises(ArithmeticOverflow):
            checked_add_balance(U128_MAX, 1)
        with pytest.raises(ArithmeticOverflow):
            checked_sub_balance(1, 2)

    def test_abs_amount(self):
        assert balance_from_amount_abs(-5) == 5
        assert balance_from_amount_abs(I128_MIN) == 2**127


# =============================================================================
# PYDANTIC / COPY
# =============================================================================


class TestIntegration:
    def test_pydantic_parses_exact_forms(self):
        params = RiskParameters(
            stability_fee="0.00001",
            liquidation_ratio="3/2",
            liquidation_penalty=Rate.checked_from_rational(1, 5),
            required_collateral_ratio=2,
        )
        assert params.stability_fee == Rate.checked_from_rational(1, 100_000)
        assert params.liquidation_ratio == Ratio.checked_from_rational(3, 2)
        assert params.required_collateral_ratio == Ratio.from_integer(2)

    def test_pydantic_serializes_decimal_strings(self):
        params = RiskParameters(liquidation_ratio="3/2", liquidation_penalty="0.2")
        dumped = params.model_dump()
        assert dumped["liquidation_ratio"] == "1.5"
        assert dumped["liquidation_penalty"] == "0.2"
        assert dumped["stability_fee"] is None

    def test_pydantic_rejects_float(self):
        with pytest.raises(ValidationError):
            RiskParameters(liquidation_ratio=1.5)

    def test_deepcopy_returns_same_instance(self):
        value = Price.from_integer(10_000)
        assert copy.deepcopy(value) is value
        assert copy.copy(value) is value
