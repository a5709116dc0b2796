"""Deterministic fixed-point arithmetic kernel.

Every real number is represented by a Python ``int`` scaled by ``SCALE``
(``10**18``).  Products are rescaled by dividing by ``SCALE`` and quotients by
multiplying by ``SCALE`` first; both divisions truncate toward zero.  The
transcendental helpers are truncated series approximations and are only
meaningful inside a bounded domain.
"""

from __future__ import annotations

import operator
from decimal import Decimal
from typing import Iterable

import numpy as np

from .errors import ArithmeticDomainError, InvalidArgumentError, UnsupportedError
from .types import Array

SCALE = 10**18
HALF = SCALE // 2
LN2 = 693_147_180_559_945_309

EXP_BOUND = 40 * SCALE
SIGMOID_BOUND = 20 * SCALE


def _tdiv(numerator: int, denominator: int) -> int:
    if denominator == 0:
        raise ArithmeticDomainError("division by zero")
    quotient = abs(numerator) // abs(denominator)
    if (numerator < 0) != (denominator < 0):
        return -quotient
    return quotient


def mul(a: int, b: int) -> int:
    """Return ``a * b`` rescaled back to fixed point."""

    return _tdiv(a * b, SCALE)


def div(a: int, b: int) -> int:
    """Return ``a / b`` in fixed point."""

    if b == 0:
        raise ArithmeticDomainError("division by zero")
    return _tdiv(a * SCALE, b)


def sqrt(x: int) -> int:
    """Babylonian square root of a fixed-point value.

    Iterates on the integer ``x * SCALE`` until the estimate stops
    decreasing, which yields the floor of the exact root.  Perfect squares of
    the integer representation come out exact.
    """

    if x < 0:
        raise ArithmeticDomainError(f"sqrt of negative value {x}")
    if x == 0:
        return 0
    n = x * SCALE
    estimate = n
    candidate = (n + 1) // 2
    while candidate < estimate:
        estimate = candidate
        candidate = (n // candidate + candidate) // 2
    return estimate


def _exp_series(x: int) -> int:
    total = SCALE
    term = SCALE
    n = 1
    while term:
        term = term * x // (n * SCALE)
        total += term
        n += 1
    return total


EXP_SATURATION = _exp_series(EXP_BOUND)


def exp(x: int) -> int:
    """Truncated Taylor approximation of ``e**x``.

    Inputs below ``-EXP_BOUND`` saturate to ``0`` and inputs above
    ``EXP_BOUND`` saturate to ``EXP_SATURATION``.
    """

    if x < -EXP_BOUND:
        return 0
    if x > EXP_BOUND:
        return EXP_SATURATION
    if x < 0:
        return _tdiv(SCALE * SCALE, _exp_series(-x))
    return _exp_series(x)


def ln(x: int) -> int:
    """Natural logarithm via power-of-two reduction and an ``atanh`` series."""

    if x <= 0:
        raise ArithmeticDomainError(f"logarithm of non-positive value {x}")
    k = 0
    y = x
    while y >= 2 * SCALE:
        y >>= 1
        k += 1
    while y < SCALE:
        y <<= 1
        k -= 1
    # y is in [SCALE, 2*SCALE), so z stays below 1/3 and the series converges fast
    z = (y - SCALE) * SCALE // (y + SCALE)
    z_sq = z * z // SCALE
    term = z
    total = 0
    n = 1
    while term:
        total += term // n
        term = term * z_sq // SCALE
        n += 2
    return k * LN2 + 2 * total


def power(base: int, exponent: int) -> int:
    """Exponentiation restricted to exponents ``0``, ``1`` and ``0.5``."""

    if exponent == 0:
        return SCALE
    if exponent == SCALE:
        return base
    if exponent == HALF:
        return sqrt(base)
    raise UnsupportedError(f"power() only supports exponents 0, 1 and 0.5, got {exponent}")


def pow_int(base: int, n: int) -> int:
    """Raise a fixed-point ``base`` to a non-negative integer count ``n``."""

    if n < 0:
        raise InvalidArgumentError(f"pow_int exponent must be >= 0, got {n}")
    result = SCALE
    while n:
        if n & 1:
            result = mul(result, base)
        base = mul(base, base)
        n >>= 1
    return result


def from_float(value: float | int | str) -> int:
    """Convert a decimal literal (``0.1``, ``"0.5"``) to fixed point exactly."""

    return int(Decimal(str(value)) * SCALE)


def to_float(value: int) -> float:
    return int(value) / SCALE


# ---------------------------------------------------------------------------
# Vector helpers over ``dtype=object`` arrays


def _coerce(value: object) -> int:
    try:
        return operator.index(value)
    except TypeError as exc:
        raise InvalidArgumentError(
            f"expected a fixed-point integer, got {value!r}; use from_float() for decimals"
        ) from exc


_COERCE = np.frompyfunc(_coerce, 1, 1)
_MUL = np.frompyfunc(mul, 2, 1)
_DIV = np.frompyfunc(div, 2, 1)
_SCALE_DOWN = np.frompyfunc(lambda value: _tdiv(value, SCALE), 1, 1)
_CLAMP = np.frompyfunc(lambda value: value if value > 0 else 0, 1, 1)


def to_array(values: Iterable[int] | Array) -> Array:
    """Return ``values`` as an object array of exact Python ints."""

    arr = np.asarray(values if isinstance(values, np.ndarray) else list(values), dtype=object)
    if arr.ndim == 0:
        raise InvalidArgumentError("expected a vector or matrix, got a scalar")
    if arr.size == 0:
        return arr
    return _COERCE(arr)


def zeros(shape: int | tuple[int, ...]) -> Array:
    return np.zeros(shape, dtype=object)


def vmul(a: Array, b: Array) -> Array:
    """Element-wise fixed-point product."""

    return _MUL(a, b)


def vdiv(a: Array, b: Array) -> Array:
    return _DIV(a, b)


def descale(value: int) -> int:
    """Divide a single value by ``SCALE``, truncating toward zero."""

    return _tdiv(value, SCALE)


def scale_down(values: Array) -> Array:
    return _SCALE_DOWN(values)


def div_count(values: Array, count: int) -> Array:
    """Divide every element by an integer ``count`` (no rescaling)."""

    return np.frompyfunc(lambda value: _tdiv(value, count), 1, 1)(values)


def matvec(matrix: Array, vector: Array) -> Array:
    """Return ``sum_j matrix[i][j] * vector[j] / SCALE`` for each row ``i``."""

    return _SCALE_DOWN(matrix * vector[np.newaxis, :]).sum(axis=1)


def outer(a: Array, b: Array) -> Array:
    return _SCALE_DOWN(a[:, np.newaxis] * b[np.newaxis, :])


def clamp_non_negative(values: Array) -> Array:
    """Floor every element at zero."""

    return _CLAMP(values)


def abs_sum(values: Array) -> int:
    return sum(abs(int(value)) for value in values.flat)


__all__ = [
    "SCALE",
    "HALF",
    "LN2",
    "EXP_BOUND",
    "EXP_SATURATION",
    "SIGMOID_BOUND",
    "mul",
    "div",
    "sqrt",
    "exp",
    "ln",
    "power",
    "pow_int",
    "from_float",
    "to_float",
    "to_array",
    "zeros",
    "vmul",
    "vdiv",
    "descale",
    "scale_down",
    "div_count",
    "matvec",
    "outer",
    "clamp_non_negative",
    "abs_sum",
]
