"""Deterministic run summarisation helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Mapping, Sequence


def compute_auc(points: Sequence[int]) -> int:
    """Trapezoidal area of fixed-point ``points`` along an implicit epoch axis."""

    if len(points) < 2:
        return 0
    return sum((a + b) // 2 for a, b in zip(points[:-1], points[1:]))


def _extract_numeric(records: Iterable[Mapping[str, object]]) -> Mapping[str, list[int]]:
    metrics: dict[str, list[int]] = {}
    for record in records:
        for key, value in record.items():
            if key in {"epoch", "seed"}:
                continue
            if isinstance(value, int) and not isinstance(value, bool):
                metrics.setdefault(key, []).append(value)
    return metrics


def _build_summary(records: list[Mapping[str, object]], tail: int) -> Mapping[str, object]:
    metrics = _extract_numeric(records)
    tail_window = min(tail, len(records)) if records else 0
    summary_metrics: dict[str, Mapping[str, int]] = {}
    for name, values in metrics.items():
        if not values:
            continue
        tail_values = values[-tail_window:] if tail_window else []
        summary_metrics[name] = {
            "min": min(values),
            "max": max(values),
            "mean": sum(values) // len(values),
            "first": values[0],
            "last": values[-1],
            "tail_auc": compute_auc(tail_values),
        }

    return {
        "version": 1,
        "records": len(records),
        "tail_window": tail_window,
        "metrics": summary_metrics,
    }


def write_summary(
    metrics_jsonl: str | Path, out_summary_json: str | Path, *, tail: int = 32
) -> str:
    """Summarise a metrics JSONL file into ``out_summary_json``.

    The output only depends on the metric values, so identical runs produce
    byte-identical summaries.
    """

    metrics_path = Path(metrics_jsonl)
    out_path = Path(out_summary_json)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    records: list[Mapping[str, object]] = []
    if metrics_path.exists():
        for line in metrics_path.read_text().splitlines():
            line = line.strip()
            if not line:
                continue
            records.append(json.loads(line))

    summary = _build_summary(records, tail)
    out_path.write_text(json.dumps(summary, sort_keys=True, indent=2))
    return str(out_path)


__all__ = ["compute_auc", "write_summary"]
