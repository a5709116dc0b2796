import math

import pytest

from fixednets.core import fixed
from fixednets.core.errors import ArithmeticDomainError, InvalidArgumentError, UnsupportedError
from fixednets.core.fixed import EXP_BOUND, EXP_SATURATION, HALF, SCALE


def _close(actual: int, expected: float, rel: float = 1e-9) -> bool:
    return math.isclose(actual / SCALE, expected, rel_tol=rel, abs_tol=1e-15)


def test_mul_and_div_truncate_toward_zero():
    assert fixed.mul(3 * SCALE, HALF) == 3 * HALF
    assert fixed.mul(-1, 1) == 0
    assert fixed.div(SCALE, 3 * SCALE) == 333_333_333_333_333_333
    assert fixed.div(-SCALE, 3 * SCALE) == -333_333_333_333_333_333
    assert fixed.descale(7 * SCALE + HALF) == 7
    assert fixed.descale(-7 * SCALE - HALF) == -7


def test_div_by_zero_raises():
    with pytest.raises(ArithmeticDomainError):
        fixed.div(SCALE, 0)


@pytest.mark.parametrize("root", [0, SCALE // 2, SCALE, 2 * SCALE, 7 * SCALE, 10**9])
def test_sqrt_exact_for_perfect_squares(root):
    assert fixed.sqrt(root * root // SCALE) == root


def test_sqrt_rejects_negative_input():
    with pytest.raises(ArithmeticDomainError):
        fixed.sqrt(-1)


@pytest.mark.parametrize("x", [-10.0, -3.5, -1.0, -0.25, 0.0, 0.5, 1.0, 2.0, 7.25, 10.0])
def test_exp_matches_reference(x):
    assert _close(fixed.exp(fixed.from_float(x)), math.exp(x))


def test_exp_saturates_outside_bounds():
    assert fixed.exp(-EXP_BOUND - 1) == 0
    assert fixed.exp(EXP_BOUND + 1) == EXP_SATURATION
    assert fixed.exp(0) == SCALE


@pytest.mark.parametrize("x", [0.01, 0.1, 0.5, 1.0, 1.5, 2.0, 3.0, 10.0, 1234.5])
def test_ln_matches_reference(x):
    assert math.isclose(fixed.ln(fixed.from_float(x)) / SCALE, math.log(x), rel_tol=1e-9, abs_tol=1e-15)


def test_ln_of_one_is_zero():
    assert fixed.ln(SCALE) == 0


@pytest.mark.parametrize("value", [0, -SCALE])
def test_ln_rejects_non_positive(value):
    with pytest.raises(ArithmeticDomainError):
        fixed.ln(value)


def test_power_supports_only_three_exponents():
    assert fixed.power(5 * SCALE, 0) == SCALE
    assert fixed.power(5 * SCALE, SCALE) == 5 * SCALE
    assert fixed.power(4 * SCALE, HALF) == 2 * SCALE
    with pytest.raises(UnsupportedError):
        fixed.power(4 * SCALE, 2 * SCALE)


def test_pow_int_repeated_squaring():
    assert fixed.pow_int(HALF, 0) == SCALE
    assert fixed.pow_int(HALF, 3) == SCALE // 8
    assert fixed.pow_int(2 * SCALE, 10) == 1024 * SCALE
    with pytest.raises(InvalidArgumentError):
        fixed.pow_int(SCALE, -1)


def test_from_float_is_exact_for_decimal_literals():
    assert fixed.from_float(0.1) == 10**17
    assert fixed.from_float("0.5") == HALF
    assert fixed.from_float(-2) == -2 * SCALE
    assert fixed.to_float(HALF) == 0.5


def test_to_array_rejects_floats():
    with pytest.raises(InvalidArgumentError):
        fixed.to_array([0.5, 1])


def test_vector_helpers():
    a = fixed.to_array([SCALE, 2 * SCALE])
    b = fixed.to_array([HALF, -SCALE])
    assert list(fixed.vmul(a, b)) == [HALF, -2 * SCALE]
    matrix = fixed.to_array([[SCALE, 0], [HALF, HALF]])
    assert list(fixed.matvec(matrix, a)) == [SCALE, 3 * HALF]
    assert fixed.outer(a, b).shape == (2, 2)
    assert list(fixed.clamp_non_negative(b)) == [HALF, 0]
    assert fixed.abs_sum(b) == HALF + SCALE
    assert list(fixed.div_count(fixed.to_array([-3, 3]), 2)) == [-1, 1]
