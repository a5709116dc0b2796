"""Dataset registry and built-in fixed-point datasets."""

# Ensure built-in datasets register themselves when the package is imported.
from .loaders import blobs as _blobs  # noqa: F401
from .loaders import xor as _xor  # noqa: F401
from .registry import DatasetSpec, available_datasets, get_dataset, register_dataset

__all__ = ["DatasetSpec", "available_datasets", "get_dataset", "register_dataset"]
