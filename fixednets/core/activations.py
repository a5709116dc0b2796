"""Activation strategies over fixed-point vectors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Protocol

import numpy as np

from . import fixed
from .errors import InvalidArgumentError
from .fixed import EXP_BOUND, SCALE, SIGMOID_BOUND
from .types import Array, StabilityInfo


class ActivationStrategy(Protocol):
    """Protocol implemented by every activation."""

    name: str
    is_monotonic: bool
    is_bounded: bool
    has_saturation: bool
    zero_centered: bool

    def activate(self, x: int) -> int:
        """Return the activation of a single value."""

    def activate_batch(self, xs: Array) -> Array:
        """Return the activation of a whole vector."""

    def derivative(self, x: int) -> int:
        """Return the derivative at pre-activation ``x``."""

    def derivative_batch(self, xs: Array) -> Array:
        ...

    def derivative_from_output(self, y: int) -> int:
        """Return the derivative given the already computed output ``y``."""

    def derivative_from_output_batch(self, ys: Array) -> Array:
        ...

    def validate_input(self, xs: Array) -> None:
        ...

    def stability(self) -> StabilityInfo:
        ...


class _Elementwise:
    """Shared batch plumbing for activations defined one value at a time."""

    name = "elementwise"
    is_monotonic = True
    is_bounded = False
    has_saturation = False
    zero_centered = False

    def activate(self, x: int) -> int:  # pragma: no cover - abstract
        raise NotImplementedError

    def derivative(self, x: int) -> int:  # pragma: no cover - abstract
        raise NotImplementedError

    def derivative_from_output(self, y: int) -> int:  # pragma: no cover - abstract
        raise NotImplementedError

    def activate_batch(self, xs: Array) -> Array:
        self.validate_input(xs)
        return np.frompyfunc(self.activate, 1, 1)(xs)

    def derivative_batch(self, xs: Array) -> Array:
        self.validate_input(xs)
        return np.frompyfunc(self.derivative, 1, 1)(xs)

    def derivative_from_output_batch(self, ys: Array) -> Array:
        self.validate_input(ys)
        return np.frompyfunc(self.derivative_from_output, 1, 1)(ys)

    def validate_input(self, xs: Array) -> None:
        if xs.ndim != 1 or xs.size == 0:
            raise InvalidArgumentError(f"{self.name} expects a non-empty vector")

    def stability(self) -> StabilityInfo:
        return StabilityInfo(min_stable_input=None, max_stable_input=None)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Linear(_Elementwise):
    """Identity transform used by dense layers without an activation."""

    name = "linear"

    def activate(self, x: int) -> int:
        return x

    def derivative(self, x: int) -> int:
        return SCALE

    def derivative_from_output(self, y: int) -> int:
        return SCALE


class ReLU(_Elementwise):
    """Exact rectifier: ``max(0, x)`` with derivative ``SCALE`` or ``0``."""

    name = "relu"

    def activate(self, x: int) -> int:
        return x if x > 0 else 0

    def derivative(self, x: int) -> int:
        return SCALE if x > 0 else 0

    def derivative_from_output(self, y: int) -> int:
        return SCALE if y > 0 else 0


class Sigmoid(_Elementwise):
    """Logistic function saturating outside ``[-20, 20]``."""

    name = "sigmoid"
    is_bounded = True
    has_saturation = True

    def activate(self, x: int) -> int:
        if x >= SIGMOID_BOUND:
            return SCALE
        if x <= -SIGMOID_BOUND:
            return 0
        return fixed.div(SCALE, SCALE + fixed.exp(-x))

    def derivative(self, x: int) -> int:
        return self.derivative_from_output(self.activate(x))

    def derivative_from_output(self, y: int) -> int:
        return y * (SCALE - y) // SCALE

    def stability(self) -> StabilityInfo:
        return StabilityInfo(
            min_stable_input=-SIGMOID_BOUND,
            max_stable_input=SIGMOID_BOUND,
            saturation_threshold=SIGMOID_BOUND,
        )


class Softmax:
    """Normalising activation computed over the whole input vector.

    Inputs are shifted by their maximum before exponentiating, so the peak
    term is always ``SCALE`` and the normaliser never vanishes.
    Only the diagonal Jacobian term ``p_i * (1 - p_i)`` is exposed as the
    derivative; the off-diagonal terms are not modelled.
    """

    name = "softmax"
    is_monotonic = True
    is_bounded = True
    has_saturation = True
    zero_centered = False

    def activate(self, x: int) -> int:
        # a single value normalises to probability one
        return self.activate_batch(fixed.to_array([x]))[0]

    def activate_batch(self, xs: Array) -> Array:
        self.validate_input(xs)
        peak = max(xs)
        exps = [fixed.exp(value - peak) if value - peak >= -EXP_BOUND else 0 for value in xs]
        total = sum(exps)
        return fixed.to_array([fixed.div(value, total) for value in exps])

    def derivative(self, x: int) -> int:
        return self.derivative_from_output(self.activate(x))

    def derivative_batch(self, xs: Array) -> Array:
        return self.derivative_from_output_batch(self.activate_batch(xs))

    def derivative_from_output(self, y: int) -> int:
        return y * (SCALE - y) // SCALE

    def derivative_from_output_batch(self, ys: Array) -> Array:
        self.validate_input(ys)
        return np.frompyfunc(self.derivative_from_output, 1, 1)(ys)

    def validate_input(self, xs: Array) -> None:
        if xs.ndim != 1 or xs.size == 0:
            raise InvalidArgumentError("softmax expects a non-empty vector")

    def stability(self) -> StabilityInfo:
        return StabilityInfo(
            min_stable_input=-EXP_BOUND,
            max_stable_input=None,
            saturation_threshold=EXP_BOUND,
        )

    def __repr__(self) -> str:
        return "Softmax()"


@dataclass(frozen=True)
class _Entry:
    name: str
    factory: Callable[[], ActivationStrategy]


_REGISTRY: Dict[str, _Entry] = {}


def register_activation(name: str, factory: Callable[[], ActivationStrategy]) -> None:
    _REGISTRY[name] = _Entry(name, factory)


def get_activation(name: str | ActivationStrategy | None) -> ActivationStrategy:
    """Resolve ``name`` to a fresh activation instance.

    ``None`` resolves to :class:`Linear`; strategy instances pass through.
    """

    if name is None:
        return Linear()
    if not isinstance(name, str):
        return name
    key = name.lower()
    if key not in _REGISTRY:
        available = ", ".join(sorted(_REGISTRY))
        raise InvalidArgumentError(f"Unknown activation {name!r}. Available activations: {available}")
    return _REGISTRY[key].factory()


def available_activations() -> Iterable[str]:
    return sorted(_REGISTRY)


register_activation("linear", Linear)
register_activation("relu", ReLU)
register_activation("sigmoid", Sigmoid)
register_activation("softmax", Softmax)

__all__ = [
    "ActivationStrategy",
    "Linear",
    "ReLU",
    "Sigmoid",
    "Softmax",
    "available_activations",
    "get_activation",
    "register_activation",
]
