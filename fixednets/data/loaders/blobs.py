"""Two Gaussian clusters for binary classification, converted to fixed point."""

from __future__ import annotations

import numpy as np

from ...core.errors import InvalidArgumentError
from ...core.fixed import SCALE, from_float
from ..registry import DatasetSpec, register_dataset


def _make_blobs(n_points: int, n_features: int, spread: float, seed: int) -> tuple[np.ndarray, np.ndarray]:
    rng = np.random.default_rng(seed)
    half = n_points // 2
    x0 = rng.normal(-1.0, spread, size=(half, n_features))
    x1 = rng.normal(1.0, spread, size=(n_points - half, n_features))
    x = np.vstack([x0, x1])
    y = np.concatenate([np.zeros(half, dtype=np.int64), np.ones(n_points - half, dtype=np.int64)])
    order = rng.permutation(n_points)
    return x[order], y[order]


@register_dataset("blobs")
def make_blobs(
    n_points: int = 32,
    n_features: int = 2,
    spread: float = 0.3,
    seed: int = 0,
    test_split: float = 0.25,
    **_: object,
) -> DatasetSpec:
    if n_points < 2:
        raise InvalidArgumentError("blobs needs at least two points")
    if not 0 <= test_split < 1:
        raise InvalidArgumentError("test_split must be in [0, 1)")
    x, y = _make_blobs(n_points, n_features, spread, seed)
    # six decimals keeps the conversion exact and platform independent
    features = [[from_float(round(float(v), 6)) for v in row] for row in x]
    labels = [int(label) * SCALE for label in y]
    n_test = int(n_points * test_split)
    n_train = n_points - n_test
    splits = {"train": (features[:n_train], labels[:n_train])}
    if n_test:
        splits["test"] = (features[n_train:], labels[n_train:])
    return DatasetSpec(
        name="blobs",
        task_type="binary",
        input_size=n_features,
        splits=splits,
        provenance={
            "type": "blobs",
            "n_points": n_points,
            "n_features": n_features,
            "spread": spread,
            "seed": seed,
            "test_split": test_split,
        },
    )
