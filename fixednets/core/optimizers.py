"""Gradient-based parameter update strategies."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterable, Optional, Protocol

import numpy as np

from . import fixed
from .errors import InvalidArgumentError, ShapeMismatchError
from .fixed import SCALE
from .types import Array, OptimizerState, UpdateResult


class OptimizerStrategy(Protocol):
    """Protocol implemented by parameter-update strategies.

    ``key`` identifies the parameter tensor being updated, normally the stable
    ``(layer_index, tensor_role)`` pair.  Stateful optimizers persist their
    accumulators under that key across calls.
    """

    name: str

    def update(
        self,
        parameters: Array,
        gradients: Array,
        learning_rate: Optional[int],
        *,
        key: Hashable = None,
    ) -> UpdateResult:
        """Return the updated parameters and the size of the applied change."""

    def reset(self) -> None:
        """Drop every accumulator."""

    def state_for(self, key: Hashable) -> Optional[OptimizerState]:
        ...

    def snapshot(self) -> object:
        """Return an opaque copy of every accumulator."""

    def restore(self, snapshot: object) -> None:
        """Reinstate accumulators captured by :meth:`snapshot`."""


def _prepare(parameters: Array, gradients: Array) -> tuple[Array, Array]:
    parameters = fixed.to_array(parameters)
    gradients = fixed.to_array(gradients)
    if parameters.shape != gradients.shape:
        raise ShapeMismatchError(
            f"parameter shape {parameters.shape} does not match gradient shape {gradients.shape}"
        )
    return parameters, gradients


def _check_learning_rate(learning_rate: int) -> int:
    if learning_rate <= 0:
        raise InvalidArgumentError(f"learning rate must be positive, got {learning_rate}")
    return learning_rate


@dataclass
class _StatefulOptimizer:
    _states: Dict[Hashable, OptimizerState] = field(default_factory=dict, init=False, repr=False)

    def reset(self) -> None:
        self._states.clear()

    def state_for(self, key: Hashable) -> Optional[OptimizerState]:
        return self._states.get(key)

    def keys(self) -> Iterable[Hashable]:
        return list(self._states)

    def snapshot(self) -> Dict[Hashable, OptimizerState]:
        return copy.deepcopy(self._states)

    def restore(self, snapshot: Dict[Hashable, OptimizerState]) -> None:
        self._states = copy.deepcopy(snapshot)


@dataclass
class SGD(_StatefulOptimizer):
    """Stochastic gradient descent with optional momentum.

    Plain: ``new = old - lr * g``.  With momentum a velocity is kept per
    parameter tensor: ``v = momentum * v - lr * g``; ``new = old + v``.
    Results are floored at zero.
    """

    learning_rate: int = 10**16
    momentum: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.momentum < SCALE:
            raise InvalidArgumentError(f"momentum must lie in [0, SCALE), got {self.momentum}")

    @property
    def name(self) -> str:
        return "momentum" if self.momentum else "sgd"

    def update(
        self,
        parameters: Array,
        gradients: Array,
        learning_rate: Optional[int] = None,
        *,
        key: Hashable = None,
    ) -> UpdateResult:
        parameters, gradients = _prepare(parameters, gradients)
        lr = _check_learning_rate(self.learning_rate if learning_rate is None else learning_rate)
        step = fixed.scale_down(gradients * lr)
        if self.momentum:
            state = self._states.get(key)
            if state is None:
                state = OptimizerState(first_moment=fixed.zeros(parameters.shape))
                self._states[key] = state
            velocity = fixed.scale_down(state.first_moment * self.momentum) - step
            state.first_moment = velocity
            state.iteration += 1
            candidate = parameters + velocity
        else:
            candidate = parameters - step
        updated = fixed.clamp_non_negative(candidate)
        return UpdateResult(parameters=updated, magnitude=fixed.abs_sum(updated - parameters))


@dataclass
class Adam(_StatefulOptimizer):
    """Adam with bias-corrected first and second moments."""

    learning_rate: int = 10**15
    beta1: int = 9 * 10**17
    beta2: int = 999 * 10**15
    epsilon: int = 10**10

    name = "adam"

    def __post_init__(self) -> None:
        for label, beta in (("beta1", self.beta1), ("beta2", self.beta2)):
            if not 0 <= beta < SCALE:
                raise InvalidArgumentError(f"{label} must lie in [0, SCALE), got {beta}")
        if self.epsilon <= 0:
            raise InvalidArgumentError("epsilon must be positive")

    def update(
        self,
        parameters: Array,
        gradients: Array,
        learning_rate: Optional[int] = None,
        *,
        key: Hashable = None,
    ) -> UpdateResult:
        parameters, gradients = _prepare(parameters, gradients)
        lr = _check_learning_rate(self.learning_rate if learning_rate is None else learning_rate)

        state = self._states.get(key)
        if state is None or state.first_moment.shape != parameters.shape:
            state = OptimizerState(
                first_moment=fixed.zeros(parameters.shape),
                second_moment=fixed.zeros(parameters.shape),
            )
            self._states[key] = state
        state.iteration += 1
        t = state.iteration

        grad_sq = fixed.vmul(gradients, gradients)
        m = fixed.scale_down(state.first_moment * self.beta1 + gradients * (SCALE - self.beta1))
        v = fixed.scale_down(state.second_moment * self.beta2 + grad_sq * (SCALE - self.beta2))
        state.first_moment = m
        state.second_moment = v

        correction1 = SCALE - fixed.pow_int(self.beta1, t)
        correction2 = SCALE - fixed.pow_int(self.beta2, t)
        m_hat = fixed.vdiv(m, correction1)
        v_hat = fixed.vdiv(v, correction2)
        denom = np.frompyfunc(lambda value: fixed.sqrt(value) + self.epsilon, 1, 1)(v_hat)
        step = fixed.vdiv(fixed.scale_down(m_hat * lr), denom)

        updated = fixed.clamp_non_negative(parameters - step)
        return UpdateResult(parameters=updated, magnitude=fixed.abs_sum(updated - parameters))


def build_optimizer(name: str, **options: int) -> OptimizerStrategy:
    """Instantiate an optimizer from a config name and fixed-point options."""

    key = name.lower()
    if key == "sgd":
        return SGD(**options)
    if key == "momentum":
        options.setdefault("momentum", 9 * 10**17)
        return SGD(**options)
    if key == "adam":
        return Adam(**options)
    raise InvalidArgumentError(f"Unknown optimizer: {name}")


__all__ = ["OptimizerStrategy", "SGD", "Adam", "build_optimizer"]
