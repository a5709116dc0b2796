"""Metric helpers for single-output binary and regression tasks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Sequence

from ..core import fixed
from ..core.errors import InvalidArgumentError
from ..core.fixed import HALF, SCALE


@dataclass(frozen=True)
class MetricResult:
    name: str
    value: int


def default_metrics(task_type: str) -> List[str]:
    if task_type == "regression":
        return ["mae", "rmse"]
    if task_type == "binary":
        return ["accuracy", "precision", "recall", "f1"]
    raise InvalidArgumentError(f"Unknown task type: {task_type}")


def threshold(value: int) -> int:
    """Map a fixed-point score to the class ``0`` or ``1`` at ``0.5``."""

    return 1 if value >= HALF else 0


def is_correct(prediction: int, label: int) -> bool:
    return threshold(prediction) == threshold(label)


def _confusion(predictions: Sequence[int], targets: Sequence[int]) -> tuple[int, int, int, int]:
    tp = fp = fn = tn = 0
    for prediction, target in zip(predictions, targets):
        p, t = threshold(prediction), threshold(target)
        if p and t:
            tp += 1
        elif p:
            fp += 1
        elif t:
            fn += 1
        else:
            tn += 1
    return tp, fp, fn, tn


def _ratio(numerator: int, denominator: int) -> int:
    return numerator * SCALE // denominator if denominator else 0


def compute_metric(name: str, predictions: Sequence[int], targets: Sequence[int]) -> MetricResult:
    """Return ``name`` evaluated on fixed-point predictions, in fixed point."""

    if len(predictions) != len(targets) or len(predictions) == 0:
        raise InvalidArgumentError("metrics need equally sized, non-empty inputs")
    key = name.lower()
    n = len(predictions)
    if key == "mae":
        value = sum(abs(p - t) for p, t in zip(predictions, targets)) // n
    elif key == "rmse":
        mse = sum((p - t) * (p - t) // SCALE for p, t in zip(predictions, targets)) // n
        value = fixed.sqrt(mse)
    elif key == "accuracy":
        value = _ratio(sum(is_correct(p, t) for p, t in zip(predictions, targets)), n)
    elif key in {"precision", "recall", "f1"}:
        tp, fp, fn, _ = _confusion(predictions, targets)
        precision = _ratio(tp, tp + fp)
        recall = _ratio(tp, tp + fn)
        if key == "precision":
            value = precision
        elif key == "recall":
            value = recall
        else:
            value = fixed.div(2 * fixed.mul(precision, recall), precision + recall) if precision + recall else 0
    else:
        raise KeyError(f"Unknown metric: {name}")
    return MetricResult(name=key, value=int(value))


def compute_metrics(
    names: Iterable[str], predictions: Sequence[int], targets: Sequence[int]
) -> Mapping[str, int]:
    results: Dict[str, int] = {}
    for name in names:
        metric = compute_metric(name, predictions, targets)
        results[metric.name] = metric.value
    return results


__all__ = ["MetricResult", "default_metrics", "threshold", "is_correct", "compute_metrics"]
