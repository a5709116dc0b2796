"""The four-row XOR truth table in fixed point."""

from __future__ import annotations

from ...core.fixed import SCALE
from ..registry import DatasetSpec, register_dataset

XOR_FEATURES = [[0, 0], [0, SCALE], [SCALE, 0], [SCALE, SCALE]]
XOR_LABELS = [0, SCALE, SCALE, 0]


@register_dataset("xor")
def make_xor(**_: object) -> DatasetSpec:
    features = [list(row) for row in XOR_FEATURES]
    labels = list(XOR_LABELS)
    return DatasetSpec(
        name="xor",
        task_type="binary",
        input_size=2,
        splits={"train": (features, labels), "test": ([list(r) for r in features], list(labels))},
        provenance={"type": "xor"},
    )
