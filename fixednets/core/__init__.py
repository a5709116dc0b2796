"""Core numerical primitives for fixednets."""

from . import activations, errors, fixed, layers, optimizers, types

__all__ = ["activations", "errors", "fixed", "layers", "optimizers", "types"]
