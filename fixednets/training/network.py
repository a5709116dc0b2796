"""Layer-stack orchestration: training, prediction and evaluation."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from ..core import fixed
from ..core.activations import ActivationStrategy
from ..core.errors import (
    InvalidArgumentError,
    NotTrainedError,
    ShapeMismatchError,
    UnsupportedError,
)
from ..core.fixed import SCALE
from ..core.layers import ActivationLayer, DenseLayer, Layer
from ..core.optimizers import OptimizerStrategy, build_optimizer
from ..core.types import (
    Array,
    BatchGradientMode,
    EvaluationResult,
    LayerInfo,
    LayerKind,
    ModelInfo,
    TrainingHistory,
    TrainingStatus,
    TrainResult,
)
from .losses import REGISTRY as LOSS_REGISTRY
from .losses import LossStrategy
from .metrics import is_correct

logger = logging.getLogger(__name__)

EARLY_STOPPING_MIN_EPOCH = 10
EARLY_STOPPING_FACTOR = 2


class Network:
    """Ordered stack of layers trained with a loss and an optimizer.

    Layers are appended with :meth:`add_dense_layer` and
    :meth:`add_activation_layer` and are never removed or reordered.  Training
    and inference share one forward transform: :meth:`train` runs the caching
    :meth:`Layer.forward`, while :meth:`predict` and :meth:`evaluate` run the
    pure :meth:`Layer.infer`, so both paths produce identical outputs.

    Callbacks receive lifecycle events when they define the matching hook:
    ``on_network_initialized``, ``on_layer_added``, ``on_training_started``,
    ``on_epoch``, ``on_backward``, ``on_layer_metrics``,
    ``on_parameters_updated`` and ``on_training_completed``.
    """

    def __init__(
        self,
        input_size: int,
        output_size: int,
        loss: LossStrategy | str | None,
        optimizer: OptimizerStrategy | str | None,
        *,
        learning_rate: int = 10**16,
        batch_size: int = 1,
        batch_gradient_mode: BatchGradientMode | str = BatchGradientMode.LAST_SAMPLE_ONLY,
        rng: np.random.Generator | None = None,
        seed: int = 0,
        callbacks: Sequence[object] | None = None,
    ) -> None:
        if input_size <= 0 or output_size <= 0:
            raise InvalidArgumentError(
                f"network sizes must be positive, got {input_size} -> {output_size}"
            )
        if loss is None:
            raise InvalidArgumentError("a loss strategy is required")
        if optimizer is None:
            raise InvalidArgumentError("an optimizer strategy is required")
        self.input_size = int(input_size)
        self.output_size = int(output_size)
        self.loss = LOSS_REGISTRY.resolve(loss)
        self.optimizer = build_optimizer(optimizer) if isinstance(optimizer, str) else optimizer
        self.callbacks = list(callbacks or [])
        self._rng = rng if rng is not None else np.random.default_rng(seed)
        self._layers: List[Layer] = []
        self.batch_gradient_mode = BatchGradientMode(batch_gradient_mode)
        self.set_learning_rate(learning_rate)
        self.set_batch_size(batch_size)

        self._history = TrainingHistory()
        self._trained = False
        self._training_runs = 0
        self._samples_seen = 0
        self._best_loss: Optional[int] = None
        self._stopped_early = False

        logger.info(
            "Created network %d -> %d with loss=%s optimizer=%s",
            self.input_size,
            self.output_size,
            self.loss.name,
            self.optimizer.name,
        )
        self._emit("on_network_initialized", self.get_model_info())

    # ------------------------------------------------------------------
    # Construction

    @property
    def layers(self) -> Tuple[Layer, ...]:
        return tuple(self._layers)

    def _current_width(self) -> int:
        return self._layers[-1].output_size if self._layers else self.input_size

    def add_dense_layer(
        self,
        size: int,
        use_bias: bool = True,
        activation: ActivationStrategy | str | None = None,
    ) -> DenseLayer:
        layer = DenseLayer(
            self._current_width(),
            size,
            activation,
            use_bias=use_bias,
            rng=self._rng,
            index=len(self._layers),
        )
        self._append(layer)
        return layer

    def add_activation_layer(self, activation: ActivationStrategy | str) -> ActivationLayer:
        layer = ActivationLayer(self._current_width(), activation, index=len(self._layers))
        self._append(layer)
        return layer

    def _append(self, layer: Layer) -> None:
        self._layers.append(layer)
        self._trained = False
        info = layer.describe()
        logger.debug("Added %s", layer)
        self._emit("on_layer_added", info)

    def add_callback(self, callback: object) -> None:
        self.callbacks.append(callback)

    # ------------------------------------------------------------------
    # Hyperparameters

    def set_learning_rate(self, learning_rate: int) -> None:
        if learning_rate <= 0:
            raise InvalidArgumentError(f"learning rate must be positive, got {learning_rate}")
        self.learning_rate = int(learning_rate)

    def set_batch_size(self, batch_size: int) -> None:
        if batch_size <= 0:
            raise InvalidArgumentError(f"batch size must be positive, got {batch_size}")
        self.batch_size = int(batch_size)

    def set_batch_gradient_mode(self, mode: BatchGradientMode | str) -> None:
        self.batch_gradient_mode = BatchGradientMode(mode)

    # ------------------------------------------------------------------
    # Training

    def train(
        self,
        features: Sequence[Sequence[int]],
        labels: Sequence[int | Sequence[int]],
        epochs: int,
        learning_rate: Optional[int] = None,
    ) -> TrainResult:
        """Fit the network with mini-batch updates.

        Each batch resets the layer gradients, runs forward, loss and backward
        for every sample, then asks every layer to update once.  Under
        ``BatchGradientMode.LAST_SAMPLE_ONLY`` each backward pass replaces the
        stored gradients, so the last sample of a batch alone drives that
        batch's update; ``AVERAGED`` uses the mean over the batch.

        Training halts early once an epoch after the tenth averages more than
        twice the best epoch loss seen in this call.

        If any sample fails mid-run the parameters, optimizer accumulators,
        history and counters are restored to their state before the call and
        the error propagates.
        """

        lr = self.learning_rate if learning_rate is None else learning_rate
        if len(features) == 0:
            raise InvalidArgumentError("features must not be empty")
        if len(features) != len(labels):
            raise InvalidArgumentError(
                f"got {len(features)} feature rows for {len(labels)} labels"
            )
        if epochs <= 0:
            raise InvalidArgumentError(f"epochs must be positive, got {epochs}")
        if lr <= 0:
            raise InvalidArgumentError(f"learning rate must be positive, got {lr}")
        if not self._layers:
            raise InvalidArgumentError("network has no layers")
        if self._current_width() != self.output_size:
            raise ShapeMismatchError(
                f"last layer produces {self._current_width()} outputs, network expects {self.output_size}"
            )
        if self.output_size > 1 and not self.loss.supports_multi_output:
            raise UnsupportedError(f"{self.loss.name} only supports single-output networks")
        xs = self._prepare_features(features)
        ys = self._prepare_labels(labels)
        for target in ys:
            for value in target:
                self.loss.validate_target(int(value))

        snapshot = self._snapshot()
        try:
            return self._fit(xs, ys, epochs, int(lr))
        except Exception:
            self._restore(snapshot)
            logger.warning("Training failed; parameters and optimizer state rolled back")
            raise

    def _fit(self, xs: List[Array], ys: List[Array], epochs: int, lr: int) -> TrainResult:
        self.learning_rate = lr
        accumulate = self.batch_gradient_mode is BatchGradientMode.AVERAGED
        n = len(xs)
        self._training_runs += 1
        self._stopped_early = False
        best_loss: Optional[int] = None
        final_loss = 0
        logger.info(
            "Training on %d samples for %d epochs (batch_size=%d, mode=%s)",
            n,
            epochs,
            self.batch_size,
            self.batch_gradient_mode.value,
        )
        self._emit("on_training_started", n, epochs, self.learning_rate)

        for epoch in range(1, epochs + 1):
            loss_total = 0
            correct = 0
            for start in range(0, n, self.batch_size):
                for layer in self._layers:
                    layer.reset_gradients()
                for idx in range(start, min(start + self.batch_size, n)):
                    outputs = self._forward(xs[idx])
                    loss_value, gradient = self._loss_and_gradient(outputs, ys[idx])
                    loss_total += loss_value
                    if self.output_size == 1 and is_correct(int(outputs[0]), int(ys[idx][0])):
                        correct += 1
                    self._backward(gradient, accumulate=accumulate)
                self._update_parameters()
            self._samples_seen += n

            epoch_loss = loss_total // n
            accuracy = correct * SCALE // n if self.output_size == 1 else None
            self._history.append(epoch_loss, accuracy)
            final_loss = epoch_loss
            metrics = {"loss": epoch_loss}
            if accuracy is not None:
                metrics["accuracy"] = accuracy
            logger.debug("epoch %d loss=%d accuracy=%s", epoch, epoch_loss, accuracy)
            self._emit("on_epoch", epoch, metrics)

            if (
                epoch > EARLY_STOPPING_MIN_EPOCH
                and best_loss is not None
                and epoch_loss > EARLY_STOPPING_FACTOR * best_loss
            ):
                logger.info("Early stopping at epoch %d (loss=%d, best=%d)", epoch, epoch_loss, best_loss)
                self._stopped_early = True
                break
            if best_loss is None or epoch_loss < best_loss:
                best_loss = epoch_loss

        if best_loss is not None and (self._best_loss is None or best_loss < self._best_loss):
            self._best_loss = best_loss
        self._trained = True
        logger.info("Training finished with loss=%d", final_loss)
        self._emit("on_training_completed", len(self._history), final_loss)
        return TrainResult(success=True, final_loss=final_loss)

    def _snapshot(self) -> dict:
        return {
            "parameters": [layer.get_parameters() for layer in self._dense_layers()],
            "optimizer": self.optimizer.snapshot(),
            "history": self._history.copy(),
            "learning_rate": self.learning_rate,
            "trained": self._trained,
            "training_runs": self._training_runs,
            "samples_seen": self._samples_seen,
            "best_loss": self._best_loss,
            "stopped_early": self._stopped_early,
        }

    def _restore(self, snapshot: dict) -> None:
        for layer, values in zip(self._dense_layers(), snapshot["parameters"]):
            layer.set_parameters(values)
        for layer in self._layers:
            layer.reset_gradients()
        self.optimizer.restore(snapshot["optimizer"])
        self._history = snapshot["history"]
        self.learning_rate = snapshot["learning_rate"]
        self._trained = snapshot["trained"]
        self._training_runs = snapshot["training_runs"]
        self._samples_seen = snapshot["samples_seen"]
        self._best_loss = snapshot["best_loss"]
        self._stopped_early = snapshot["stopped_early"]

    def _forward(self, inputs: Array) -> Array:
        for layer in self._layers:
            inputs = layer.forward(inputs)
        return inputs

    def _infer(self, inputs: Array) -> Array:
        for layer in self._layers:
            inputs = layer.infer(inputs)
        return inputs

    def _backward(self, gradient: Array, *, accumulate: bool) -> Array:
        for layer in reversed(self._layers):
            gradient = layer.backward(gradient, accumulate=accumulate)
        magnitude = 0
        for layer in self._layers:
            layer_magnitude = layer.gradient_magnitude()
            magnitude += layer_magnitude
            self._emit("on_layer_metrics", layer.index, layer.parameter_count(), layer_magnitude)
        self._emit("on_backward", magnitude)
        return gradient

    def _update_parameters(self) -> None:
        for layer in self._layers:
            magnitude = layer.update_parameters(self.optimizer, self.learning_rate)
            if layer.kind is LayerKind.DENSE:
                self._emit("on_parameters_updated", layer.index, magnitude)

    def _loss_and_gradient(self, outputs: Array, target: Array) -> Tuple[int, Array]:
        losses = [self.loss.calculate_loss(int(p), int(t)) for p, t in zip(outputs, target)]
        gradient = fixed.to_array(
            [self.loss.calculate_gradient(int(p), int(t)) for p, t in zip(outputs, target)]
        )
        return sum(losses) // len(losses), gradient

    # ------------------------------------------------------------------
    # Inference

    def _require_trained(self) -> None:
        if not self._trained:
            raise NotTrainedError("network must be trained or given parameters before inference")

    def predict_outputs(self, features: Sequence[int]) -> List[int]:
        """Return the full output vector for one feature row."""

        self._require_trained()
        (row,) = self._prepare_features([features])
        return [int(value) for value in self._infer(row)]

    def predict(self, features: Sequence[int]) -> int:
        """Return the single output of a one-output network."""

        if self.output_size != 1:
            raise UnsupportedError("predict() needs a single-output network; use predict_outputs()")
        return self.predict_outputs(features)[0]

    def predict_batch(self, features: Sequence[Sequence[int]]) -> List[int]:
        if len(features) == 0:
            raise InvalidArgumentError("features must not be empty")
        return [self.predict(row) for row in features]

    def evaluate(
        self, features: Sequence[Sequence[int]], labels: Sequence[int | Sequence[int]]
    ) -> EvaluationResult:
        """Return ``(accuracy, loss)`` without touching any layer cache."""

        self._require_trained()
        if len(features) == 0:
            raise InvalidArgumentError("features must not be empty")
        if len(features) != len(labels):
            raise InvalidArgumentError(
                f"got {len(features)} feature rows for {len(labels)} labels"
            )
        if self.output_size != 1:
            raise UnsupportedError("accuracy is only defined for single-output networks")
        xs = self._prepare_features(features)
        ys = self._prepare_labels(labels)
        loss_total = 0
        correct = 0
        for x, y in zip(xs, ys):
            outputs = self._infer(x)
            loss_value, _ = self._loss_and_gradient(outputs, y)
            loss_total += loss_value
            if is_correct(int(outputs[0]), int(y[0])):
                correct += 1
        n = len(xs)
        return EvaluationResult(accuracy=correct * SCALE // n, loss=loss_total // n)

    def reset(self) -> None:
        """Clear caches, optimizer accumulators, history and the trained flag.

        Parameters are kept; call :meth:`set_parameters` to replace them.
        """

        for layer in self._layers:
            layer.reset_gradients()
        self.optimizer.reset()
        self._history = TrainingHistory()
        self._trained = False
        self._training_runs = 0
        self._samples_seen = 0
        self._best_loss = None
        self._stopped_early = False

    # ------------------------------------------------------------------
    # Introspection

    def _dense_layers(self) -> List[DenseLayer]:
        return [layer for layer in self._layers if layer.kind is LayerKind.DENSE]

    def parameter_count(self) -> int:
        return sum(layer.parameter_count() for layer in self._layers)

    def get_parameters(self) -> List[int]:
        """Flatten every dense layer: weights row-major, then bias, in layer order."""

        values: List[int] = []
        for layer in self._dense_layers():
            values.extend(layer.get_parameters())
        return values

    def set_parameters(self, values: Sequence[int]) -> None:
        flat = fixed.to_array(values)
        if flat.ndim != 1 or flat.shape[0] != self.parameter_count():
            raise ShapeMismatchError(
                f"expected {self.parameter_count()} parameters, got shape {flat.shape}"
            )
        if any(value < 0 for value in flat):
            raise InvalidArgumentError("parameters must be non-negative")
        offset = 0
        for layer in self._dense_layers():
            count = layer.parameter_count()
            layer.set_parameters(flat[offset : offset + count])
            offset += count
        self._trained = True

    def get_model_info(self) -> ModelInfo:
        return ModelInfo(
            input_size=self.input_size,
            output_size=self.output_size,
            layer_count=len(self._layers),
            parameter_count=self.parameter_count(),
            learning_rate=self.learning_rate,
            batch_size=self.batch_size,
            loss=self.loss.name,
            optimizer=self.optimizer.name,
            batch_gradient_mode=self.batch_gradient_mode,
        )

    def get_training_status(self) -> TrainingStatus:
        return TrainingStatus(
            is_trained=self._trained,
            epochs_completed=len(self._history),
            training_runs=self._training_runs,
            samples_seen=self._samples_seen,
            last_loss=self._history.loss[-1] if self._history.loss else None,
            best_loss=self._best_loss,
            stopped_early=self._stopped_early,
        )

    def get_network_architecture(self) -> List[LayerInfo]:
        return [layer.describe() for layer in self._layers]

    def get_training_history(self) -> TrainingHistory:
        return self._history.copy()

    # ------------------------------------------------------------------
    # Helpers

    def _prepare_features(self, features: Iterable[Sequence[int]]) -> List[Array]:
        rows: List[Array] = []
        for row in features:
            arr = fixed.to_array(row)
            if arr.ndim != 1 or arr.shape[0] != self.input_size:
                raise ShapeMismatchError(
                    f"expected feature rows of length {self.input_size}, got shape {arr.shape}"
                )
            rows.append(arr)
        return rows

    def _prepare_labels(self, labels: Iterable[int | Sequence[int]]) -> List[Array]:
        targets: List[Array] = []
        for label in labels:
            if isinstance(label, (int, np.integer)):
                arr = fixed.to_array([label])
            else:
                arr = fixed.to_array(label)
            if arr.ndim != 1 or arr.shape[0] != self.output_size:
                raise ShapeMismatchError(
                    f"expected labels of length {self.output_size}, got shape {arr.shape}"
                )
            targets.append(arr)
        return targets

    def _emit(self, hook: str, *args: object) -> None:
        for callback in self.callbacks:
            handler = getattr(callback, hook, None)
            if callable(handler):
                handler(*args)

    def __repr__(self) -> str:
        return (
            f"Network({self.input_size} -> {self.output_size}, layers={len(self._layers)}, "
            f"loss={self.loss.name}, optimizer={self.optimizer.name})"
        )


__all__ = ["Network", "EARLY_STOPPING_MIN_EPOCH", "EARLY_STOPPING_FACTOR"]
