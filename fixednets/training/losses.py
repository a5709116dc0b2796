"""Loss strategies and the registry used by the training loop."""

from __future__ import annotations

from typing import Callable, Dict, Iterable, Protocol, Sequence

from ..core import fixed
from ..core.errors import ArithmeticDomainError, InvalidArgumentError
from ..core.fixed import SCALE
from ..core.types import BatchLoss


class LossStrategy(Protocol):
    """Protocol implemented by per-sample losses over fixed-point values."""

    name: str
    supports_multi_output: bool

    def calculate_loss(self, prediction: int, target: int) -> int:
        """Return the non-negative loss of one prediction."""

    def calculate_gradient(self, prediction: int, target: int) -> int:
        """Return the signed gradient of the loss with respect to ``prediction``."""

    def calculate_batch_loss(self, predictions: Sequence[int], targets: Sequence[int]) -> BatchLoss:
        ...

    def calculate_batch_gradient(self, predictions: Sequence[int], targets: Sequence[int]) -> list[int]:
        ...

    def validate_inputs(self, prediction: int, target: int) -> None:
        ...

    def validate_target(self, target: int) -> None:
        ...


class _BaseLoss:
    name = "loss"
    supports_multi_output = True

    def calculate_loss(self, prediction: int, target: int) -> int:  # pragma: no cover - abstract
        raise NotImplementedError

    def calculate_gradient(self, prediction: int, target: int) -> int:  # pragma: no cover - abstract
        raise NotImplementedError

    def validate_target(self, target: int) -> None:
        return None

    def validate_inputs(self, prediction: int, target: int) -> None:
        self.validate_target(target)

    def _check_batch(self, predictions: Sequence[int], targets: Sequence[int]) -> None:
        if len(predictions) == 0:
            raise InvalidArgumentError(f"{self.name}: empty batch")
        if len(predictions) != len(targets):
            raise InvalidArgumentError(
                f"{self.name}: {len(predictions)} predictions for {len(targets)} targets"
            )

    def calculate_batch_loss(self, predictions: Sequence[int], targets: Sequence[int]) -> BatchLoss:
        self._check_batch(predictions, targets)
        total = sum(self.calculate_loss(int(p), int(t)) for p, t in zip(predictions, targets))
        return BatchLoss(total=total, mean=total // len(predictions))

    def calculate_batch_gradient(self, predictions: Sequence[int], targets: Sequence[int]) -> list[int]:
        self._check_batch(predictions, targets)
        return [self.calculate_gradient(int(p), int(t)) for p, t in zip(predictions, targets)]

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class SquaredError(_BaseLoss):
    """``(p - t)^2``; gradient ``2 * (p - t)``.

    The loss is floored at one unit whenever ``p != t`` so it is zero only
    for an exact match.  With ``descale_gradient=True`` the gradient is
    ``2 * (p - t) / SCALE``, the raw-integer form in which differences
    smaller than half a unit vanish.
    """

    name = "mse"

    def __init__(self, *, descale_gradient: bool = False) -> None:
        self.descale_gradient = descale_gradient

    def calculate_loss(self, prediction: int, target: int) -> int:
        diff = prediction - target
        if diff == 0:
            return 0
        return max(1, diff * diff // SCALE)

    def calculate_gradient(self, prediction: int, target: int) -> int:
        gradient = 2 * (prediction - target)
        if self.descale_gradient:
            return fixed.descale(gradient)
        return gradient

    def __repr__(self) -> str:
        return f"SquaredError(descale_gradient={self.descale_gradient})"


class AbsoluteError(_BaseLoss):
    """``|p - t|``; the sub-gradient at ``p == t`` is zero."""

    name = "mae"

    def calculate_loss(self, prediction: int, target: int) -> int:
        return abs(prediction - target)

    def calculate_gradient(self, prediction: int, target: int) -> int:
        if prediction > target:
            return SCALE
        if prediction < target:
            return -SCALE
        return 0


class BinaryCrossEntropy(_BaseLoss):
    """Binary cross-entropy with hard ``0``/``SCALE`` labels.

    Predictions are clipped ``EPSILON`` away from ``0`` and ``SCALE`` before
    the logarithm.  The gradient is the simplified ``p - t`` form rather than
    ``(p - t) / (p * (1 - p))``.
    """

    name = "bce"
    supports_multi_output = False
    EPSILON = 10**3

    def validate_target(self, target: int) -> None:
        if target not in (0, SCALE):
            raise InvalidArgumentError(
                f"cross-entropy targets must be exactly 0 or SCALE, got {target}"
            )

    def validate_inputs(self, prediction: int, target: int) -> None:
        self.validate_target(target)
        if not 0 <= prediction <= SCALE:
            raise ArithmeticDomainError(f"prediction {prediction} is not a probability")

    def calculate_loss(self, prediction: int, target: int) -> int:
        self.validate_inputs(prediction, target)
        clipped = min(max(prediction, self.EPSILON), SCALE - self.EPSILON)
        if target == SCALE:
            return -fixed.ln(clipped)
        return -fixed.ln(SCALE - clipped)

    def calculate_gradient(self, prediction: int, target: int) -> int:
        self.validate_inputs(prediction, target)
        return prediction - target


LossFactory = Callable[[], LossStrategy]


class LossRegistry:
    """Central registry for loss strategies."""

    def __init__(self) -> None:
        self._registry: Dict[str, LossFactory] = {}

    def register(self, name: str, factory: LossFactory) -> None:
        self._registry[name] = factory

    def get(self, name: str) -> LossStrategy:
        try:
            return self._registry[name]()
        except KeyError as exc:
            raise InvalidArgumentError(f"Unknown loss: {name}") from exc

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def resolve(self, name: str | LossStrategy, *, task_type: str = "binary") -> LossStrategy:
        if not isinstance(name, str):
            return name
        if name == "auto":
            if task_type == "regression":
                name = "mse"
            elif task_type == "binary":
                name = "bce"
            else:
                raise InvalidArgumentError(f"Unknown task type: {task_type}")
        if name not in self._registry:
            available = ", ".join(sorted(self._registry))
            raise InvalidArgumentError(f"Unknown loss {name!r}. Available losses: {available}")
        return self._registry[name]()


REGISTRY = LossRegistry()

REGISTRY.register("mse", SquaredError)
REGISTRY.register("mse_descaled", lambda: SquaredError(descale_gradient=True))
REGISTRY.register("mae", AbsoluteError)
REGISTRY.register("bce", BinaryCrossEntropy)
REGISTRY.register("cross_entropy", BinaryCrossEntropy)

__all__ = [
    "LossStrategy",
    "SquaredError",
    "AbsoluteError",
    "BinaryCrossEntropy",
    "LossRegistry",
    "REGISTRY",
]
