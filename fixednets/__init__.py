"""Fixed-point layered neural networks."""

from .core.activations import Linear, ReLU, Sigmoid, Softmax, get_activation
from .core.errors import (
    ArithmeticDomainError,
    FixedNetError,
    InvalidArgumentError,
    NotTrainedError,
    ShapeMismatchError,
    UnsupportedError,
)
from .core.fixed import HALF, SCALE, from_float, to_float
from .core.optimizers import SGD, Adam, build_optimizer
from .core.types import BatchGradientMode
from .training.losses import AbsoluteError, BinaryCrossEntropy, SquaredError
from .training.network import Network

__all__ = [
    "SCALE",
    "HALF",
    "from_float",
    "to_float",
    "Network",
    "BatchGradientMode",
    "Linear",
    "ReLU",
    "Sigmoid",
    "Softmax",
    "get_activation",
    "SquaredError",
    "AbsoluteError",
    "BinaryCrossEntropy",
    "SGD",
    "Adam",
    "build_optimizer",
    "FixedNetError",
    "InvalidArgumentError",
    "ShapeMismatchError",
    "NotTrainedError",
    "ArithmeticDomainError",
    "UnsupportedError",
]
