"""Dataset registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, MutableMapping, Tuple

from ..core.errors import InvalidArgumentError

TASK_TYPES = ("regression", "binary")

Split = Tuple[List[List[int]], List[int]]


@dataclass(frozen=True)
class DatasetSpec:
    """Fixed-point dataset with named splits.

    Attributes
    ----------
    name:
        Registry identifier.
    task_type:
        ``"binary"`` or ``"regression"``; drives ``loss="auto"`` resolution.
    input_size:
        Number of features per row.
    splits:
        Mapping of split name to ``(features, labels)``; every dataset has a
        ``"train"`` split.
    provenance:
        Parameters that regenerate the dataset, recorded in run manifests.
    """

    name: str
    task_type: str
    input_size: int
    splits: Dict[str, Split]
    provenance: Dict[str, Any] = field(default_factory=dict)

    def split(self, name: str) -> Split:
        try:
            return self.splits[name]
        except KeyError as exc:
            raise InvalidArgumentError(f"Dataset {self.name!r} has no split {name!r}") from exc

    @property
    def sizes(self) -> Dict[str, int]:
        return {name: len(features) for name, (features, _) in self.splits.items()}


DatasetFactory = Callable[..., DatasetSpec]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory, directly or as a decorator::

        @register_dataset("xor")
        def make_xor(**kwargs):
            ...
    """

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    if name is None:
        raise TypeError("register_dataset requires a name when used without a decorator")
    return _decorator


def get_dataset(dataset: str, /, **options: Any) -> DatasetSpec:
    """Return the :class:`DatasetSpec` for ``dataset``."""

    if dataset not in _REGISTRY:
        raise KeyError(f"Unknown dataset: {dataset}")
    spec = _REGISTRY[dataset](**options)
    _validate_spec(spec)
    return spec


def available_datasets() -> Iterable[str]:
    return sorted(_REGISTRY)


def _validate_spec(spec: DatasetSpec) -> None:
    if spec.task_type not in TASK_TYPES:
        raise ValueError(f"Invalid task type: {spec.task_type}")
    if "train" not in spec.splits:
        raise ValueError(f"Dataset {spec.name!r} has no train split")
    for split, (features, labels) in spec.splits.items():
        if len(features) != len(labels):
            raise ValueError(f"Split {split!r} has {len(features)} rows but {len(labels)} labels")
        if any(len(row) != spec.input_size for row in features):
            raise ValueError(f"Split {split!r} has rows not of length {spec.input_size}")


__all__ = [
    "DatasetSpec",
    "available_datasets",
    "get_dataset",
    "register_dataset",
]
