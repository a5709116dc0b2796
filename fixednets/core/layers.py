"""Dense and activation layers with cached forward/backward state."""

from __future__ import annotations

import abc
import logging
from typing import Optional, Sequence

import numpy as np

from . import fixed
from .activations import ActivationStrategy, get_activation
from .errors import InvalidArgumentError, ShapeMismatchError
from .fixed import SCALE
from .types import Array, LayerInfo, LayerKind, LayerState

logger = logging.getLogger(__name__)


def xavier_uniform(rng: np.random.Generator, output_size: int, input_size: int) -> Array:
    """Draw non-negative weights bounded by ``SCALE / sqrt(in + out)``."""

    limit = fixed.div(SCALE, fixed.sqrt((input_size + output_size) * SCALE))
    if limit <= 0:
        return fixed.zeros((output_size, input_size))
    draws = rng.integers(0, limit, size=(output_size, input_size), dtype=np.int64)
    return fixed.to_array(draws)


class Layer(abc.ABC):
    """Common contract of every layer in a :class:`~fixednets.training.network.Network`."""

    kind: LayerKind

    def __init__(self, input_size: int, output_size: int, activation: ActivationStrategy, index: int) -> None:
        if input_size <= 0 or output_size <= 0:
            raise InvalidArgumentError(
                f"layer sizes must be positive, got {input_size}x{output_size}"
            )
        self.input_size = int(input_size)
        self.output_size = int(output_size)
        self.activation = activation
        self.index = int(index)
        self.state = LayerState.UNINITIALIZED
        self.last_input: Optional[Array] = None
        self.last_output: Optional[Array] = None

    @abc.abstractmethod
    def infer(self, inputs: Array) -> Array:
        """Pure forward transform that leaves every cache untouched."""

    @abc.abstractmethod
    def forward(self, inputs: Array) -> Array:
        """Forward transform that records the caches needed by :meth:`backward`."""

    @abc.abstractmethod
    def backward(self, output_gradient: Array, *, accumulate: bool = False) -> Array:
        """Return the gradient with respect to the layer input."""

    def update_parameters(self, optimizer, learning_rate: int) -> int:
        """Apply stored gradients through ``optimizer``; returns the update magnitude."""

        return 0

    def reset_gradients(self) -> None:
        self.last_input = None
        self.last_output = None
        self.state = LayerState.UNINITIALIZED

    def parameter_count(self) -> int:
        return 0

    def gradient_magnitude(self) -> int:
        return 0

    def get_parameters(self) -> list[int]:
        return []

    def set_parameters(self, values: Sequence[int]) -> None:
        if len(values):
            raise ShapeMismatchError(f"layer {self.index} holds no parameters")

    def describe(self) -> LayerInfo:
        return LayerInfo(
            index=self.index,
            kind=self.kind,
            input_size=self.input_size,
            output_size=self.output_size,
            activation=self.activation.name,
            use_bias=False,
            parameter_count=self.parameter_count(),
        )

    def _check_input(self, inputs: Array) -> Array:
        inputs = fixed.to_array(inputs)
        if inputs.ndim != 1 or inputs.shape[0] != self.input_size:
            raise ShapeMismatchError(
                f"layer {self.index} expects {self.input_size} inputs, got shape {inputs.shape}"
            )
        return inputs

    def _check_output_gradient(self, output_gradient: Array) -> Array:
        if self.state is LayerState.UNINITIALIZED or self.last_input is None:
            raise ShapeMismatchError(f"layer {self.index}: backward called before forward")
        output_gradient = fixed.to_array(output_gradient)
        if output_gradient.ndim != 1 or output_gradient.shape[0] != self.output_size:
            raise ShapeMismatchError(
                f"layer {self.index} expects a gradient of length {self.output_size}, "
                f"got shape {output_gradient.shape}"
            )
        return output_gradient

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(index={self.index}, {self.input_size}->{self.output_size}, "
            f"activation={self.activation.name})"
        )


class DenseLayer(Layer):
    """Fully-connected layer owning a weight matrix and an optional bias."""

    kind = LayerKind.DENSE

    def __init__(
        self,
        input_size: int,
        output_size: int,
        activation: ActivationStrategy | str | None = None,
        *,
        use_bias: bool = True,
        rng: np.random.Generator | None = None,
        index: int = 0,
    ) -> None:
        super().__init__(input_size, output_size, get_activation(activation), index)
        self.use_bias = bool(use_bias)
        rng = rng if rng is not None else np.random.default_rng(index)
        self.weights: Array = xavier_uniform(rng, self.output_size, self.input_size)
        self.bias: Array = fixed.zeros(self.output_size)
        self.last_pre_activation: Optional[Array] = None
        self.weight_gradient: Optional[Array] = None
        self.bias_gradient: Optional[Array] = None
        self._gradient_samples = 0

    def _pre_activation(self, inputs: Array) -> Array:
        pre = fixed.matvec(self.weights, inputs)
        if self.use_bias:
            pre = pre + self.bias
        return pre

    def infer(self, inputs: Array) -> Array:
        inputs = self._check_input(inputs)
        return self.activation.activate_batch(self._pre_activation(inputs))

    def forward(self, inputs: Array) -> Array:
        inputs = self._check_input(inputs)
        pre = self._pre_activation(inputs)
        outputs = self.activation.activate_batch(pre)
        self.last_input = inputs
        self.last_pre_activation = pre
        self.last_output = outputs
        self.state = LayerState.FORWARD_DONE
        return outputs

    def backward(self, output_gradient: Array, *, accumulate: bool = False) -> Array:
        output_gradient = self._check_output_gradient(output_gradient)
        derivative = self.activation.derivative_batch(self.last_pre_activation)
        delta = fixed.vmul(output_gradient, derivative)
        weight_gradient = fixed.outer(delta, self.last_input)
        bias_gradient = delta.copy()
        input_gradient = fixed.scale_down(self.weights * delta[:, np.newaxis]).sum(axis=0)

        if accumulate and self.weight_gradient is not None:
            self.weight_gradient = self.weight_gradient + weight_gradient
            self.bias_gradient = self.bias_gradient + bias_gradient
            self._gradient_samples += 1
        else:
            self.weight_gradient = weight_gradient
            self.bias_gradient = bias_gradient
            self._gradient_samples = 1
        self.state = LayerState.BACKWARD_DONE
        return input_gradient

    def update_parameters(self, optimizer, learning_rate: int) -> int:
        if self.weight_gradient is None:
            return 0
        samples = max(1, self._gradient_samples)
        weight_gradient = self.weight_gradient
        bias_gradient = self.bias_gradient
        if samples > 1:
            weight_gradient = fixed.div_count(weight_gradient, samples)
            bias_gradient = fixed.div_count(bias_gradient, samples)

        weights, magnitude = optimizer.update(
            self.weights, weight_gradient, learning_rate, key=(self.index, "weights")
        )
        new_weights = fixed.clamp_non_negative(weights)
        new_bias = self.bias
        if self.use_bias:
            bias, bias_magnitude = optimizer.update(
                self.bias, bias_gradient, learning_rate, key=(self.index, "bias")
            )
            new_bias = fixed.clamp_non_negative(bias)
            magnitude += bias_magnitude

        self.weights = new_weights
        self.bias = new_bias
        self.weight_gradient = None
        self.bias_gradient = None
        self._gradient_samples = 0
        self.state = LayerState.FORWARD_DONE
        logger.debug("layer %d updated, magnitude=%d", self.index, magnitude)
        return magnitude

    def reset_gradients(self) -> None:
        super().reset_gradients()
        self.last_pre_activation = None
        self.weight_gradient = None
        self.bias_gradient = None
        self._gradient_samples = 0

    def parameter_count(self) -> int:
        count = self.output_size * self.input_size
        if self.use_bias:
            count += self.output_size
        return count

    def gradient_magnitude(self) -> int:
        if self.weight_gradient is None:
            return 0
        return fixed.abs_sum(self.weight_gradient) + fixed.abs_sum(self.bias_gradient)

    def get_parameters(self) -> list[int]:
        """Weights row-major, followed by the bias when the layer has one."""

        values = [int(value) for value in self.weights.flat]
        if self.use_bias:
            values.extend(int(value) for value in self.bias)
        return values

    def set_parameters(self, values: Sequence[int]) -> None:
        values = fixed.to_array(values)
        if values.ndim != 1 or values.shape[0] != self.parameter_count():
            raise ShapeMismatchError(
                f"layer {self.index} expects {self.parameter_count()} parameters, "
                f"got {values.shape[0] if values.ndim == 1 else values.shape}"
            )
        if any(value < 0 for value in values):
            raise InvalidArgumentError(f"layer {self.index}: parameters must be non-negative")
        n_weights = self.output_size * self.input_size
        self.weights = values[:n_weights].reshape(self.output_size, self.input_size).copy()
        if self.use_bias:
            self.bias = values[n_weights:].copy()

    def describe(self) -> LayerInfo:
        return LayerInfo(
            index=self.index,
            kind=self.kind,
            input_size=self.input_size,
            output_size=self.output_size,
            activation=self.activation.name,
            use_bias=self.use_bias,
            parameter_count=self.parameter_count(),
        )


class ActivationLayer(Layer):
    """Stateless element transform; output size always equals input size."""

    kind = LayerKind.ACTIVATION

    def __init__(self, size: int, activation: ActivationStrategy | str, *, index: int = 0) -> None:
        if activation is None:
            raise InvalidArgumentError("activation layers require an activation strategy")
        super().__init__(size, size, get_activation(activation), index)

    def infer(self, inputs: Array) -> Array:
        return self.activation.activate_batch(self._check_input(inputs))

    def forward(self, inputs: Array) -> Array:
        inputs = self._check_input(inputs)
        outputs = self.activation.activate_batch(inputs)
        self.last_input = inputs
        self.last_output = outputs
        self.state = LayerState.FORWARD_DONE
        return outputs

    def backward(self, output_gradient: Array, *, accumulate: bool = False) -> Array:
        output_gradient = self._check_output_gradient(output_gradient)
        derivative = self.activation.derivative_batch(self.last_input)
        self.state = LayerState.BACKWARD_DONE
        return fixed.vmul(output_gradient, derivative)


__all__ = ["Layer", "DenseLayer", "ActivationLayer", "xavier_uniform"]
