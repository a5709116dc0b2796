"""Training loop, losses, metrics and config-driven pipelines."""

from .losses import REGISTRY as LOSS_REGISTRY
from .losses import AbsoluteError, BinaryCrossEntropy, LossRegistry, LossStrategy, SquaredError
from .network import Network
from .pipelines import build_network, load_preset, presets, run_pipeline

__all__ = [
    "LOSS_REGISTRY",
    "AbsoluteError",
    "BinaryCrossEntropy",
    "LossRegistry",
    "LossStrategy",
    "SquaredError",
    "Network",
    "build_network",
    "load_preset",
    "presets",
    "run_pipeline",
]
