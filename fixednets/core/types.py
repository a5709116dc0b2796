"""Core typing contracts for fixednets."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, List, NamedTuple, Optional, Tuple

import numpy as np

# Arrays always carry ``dtype=object`` so every element is an exact Python int.
Array = np.ndarray

ParameterKey = Tuple[int, str]


class LayerKind(enum.Enum):
    """Closed set of layer variants a network can hold."""

    DENSE = "dense"
    ACTIVATION = "activation"


class LayerState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    FORWARD_DONE = "forward_done"
    BACKWARD_DONE = "backward_done"


class BatchGradientMode(enum.Enum):
    """How per-sample gradients inside one mini-batch are combined.

    ``LAST_SAMPLE_ONLY`` lets each sample's backward pass overwrite the stored
    gradient, so only the final sample of a batch drives the update.
    ``AVERAGED`` sums the per-sample gradients and divides by the batch size.
    """

    LAST_SAMPLE_ONLY = "last_sample_only"
    AVERAGED = "averaged"


class TrainResult(NamedTuple):
    success: bool
    final_loss: int


class EvaluationResult(NamedTuple):
    accuracy: int
    loss: int


class BatchLoss(NamedTuple):
    total: int
    mean: int


class UpdateResult(NamedTuple):
    parameters: Array
    magnitude: int


@dataclass(frozen=True)
class StabilityInfo:
    """Input band inside which an activation is numerically well behaved."""

    min_stable_input: Optional[int]
    max_stable_input: Optional[int]
    saturation_threshold: Optional[int] = None


@dataclass(frozen=True)
class LayerInfo:
    index: int
    kind: LayerKind
    input_size: int
    output_size: int
    activation: str
    use_bias: bool
    parameter_count: int


@dataclass(frozen=True)
class ModelInfo:
    input_size: int
    output_size: int
    layer_count: int
    parameter_count: int
    learning_rate: int
    batch_size: int
    loss: str
    optimizer: str
    batch_gradient_mode: BatchGradientMode


@dataclass(frozen=True)
class TrainingStatus:
    is_trained: bool
    epochs_completed: int
    training_runs: int
    samples_seen: int
    last_loss: Optional[int]
    best_loss: Optional[int]
    stopped_early: bool


@dataclass
class TrainingHistory:
    """Append-only per-epoch loss and accuracy sequences."""

    loss: List[int] = field(default_factory=list)
    accuracy: List[Optional[int]] = field(default_factory=list)

    def append(self, loss: int, accuracy: Optional[int]) -> None:
        self.loss.append(loss)
        self.accuracy.append(accuracy)

    def copy(self) -> "TrainingHistory":
        return TrainingHistory(loss=list(self.loss), accuracy=list(self.accuracy))

    def __len__(self) -> int:
        return len(self.loss)


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`fixednets.training.pipelines.run_pipeline`."""

    epochs: int
    final_loss: int
    metrics_path: str
    manifest_path: str
    summary_path: str = ""
    test_metrics: Dict[str, int] = field(default_factory=dict)


@dataclass
class OptimizerState:
    """Moment/velocity record persisted for one parameter tensor."""

    first_moment: Array
    second_moment: Optional[Array] = None
    iteration: int = 0
    metadata: Dict[str, object] = field(default_factory=dict)


__all__ = [
    "Array",
    "ParameterKey",
    "LayerKind",
    "LayerState",
    "BatchGradientMode",
    "TrainResult",
    "EvaluationResult",
    "BatchLoss",
    "UpdateResult",
    "StabilityInfo",
    "LayerInfo",
    "ModelInfo",
    "TrainingStatus",
    "TrainingHistory",
    "RunResult",
    "OptimizerState",
]
