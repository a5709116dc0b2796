"""Error taxonomy for fixednets."""

from __future__ import annotations


class FixedNetError(Exception):
    """Base class for every error raised by fixednets."""


class InvalidArgumentError(FixedNetError, ValueError):
    """Empty, mismatched or out-of-range arguments."""


class ShapeMismatchError(FixedNetError, ValueError):
    """Vector lengths disagree with a layer, or backward ran before forward."""


class NotTrainedError(FixedNetError, RuntimeError):
    """Prediction or evaluation requested before training or ``set_parameters``."""


class ArithmeticDomainError(FixedNetError, ArithmeticError):
    """Division by zero, logarithm of a non-positive value, invalid probability."""


class UnsupportedError(FixedNetError, NotImplementedError):
    """Operation outside what the fixed-point runtime implements."""


__all__ = [
    "FixedNetError",
    "InvalidArgumentError",
    "ShapeMismatchError",
    "NotTrainedError",
    "ArithmeticDomainError",
    "UnsupportedError",
]
