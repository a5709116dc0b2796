"""In-memory capture of network lifecycle events."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Tuple

from ..core.types import LayerInfo, ModelInfo


@dataclass(frozen=True)
class Event:
    name: str
    payload: Mapping[str, Any]


@dataclass
class EventRecorder:
    """Callback that records every event emitted by a network.

    ``include_per_sample`` controls whether the high-volume backward and
    per-layer metric events are kept.
    """

    include_per_sample: bool = True
    events: List[Event] = field(default_factory=list)

    def _record(self, name: str, **payload: Any) -> None:
        self.events.append(Event(name=name, payload=payload))

    def on_network_initialized(self, info: ModelInfo) -> None:
        self._record("network_initialized", info=info)

    def on_layer_added(self, info: LayerInfo) -> None:
        self._record("layer_added", info=info)

    def on_training_started(self, samples: int, epochs: int, learning_rate: int) -> None:
        self._record("training_started", samples=samples, epochs=epochs, learning_rate=learning_rate)

    def on_epoch(self, epoch: int, metrics: Mapping[str, int]) -> None:
        self._record("epoch_completed", epoch=epoch, **dict(metrics))

    def on_backward(self, magnitude: int) -> None:
        if self.include_per_sample:
            self._record("backward_pass_completed", gradient_magnitude=magnitude)

    def on_layer_metrics(self, index: int, parameter_count: int, gradient_magnitude: int) -> None:
        if self.include_per_sample:
            self._record(
                "layer_metrics",
                index=index,
                parameter_count=parameter_count,
                gradient_magnitude=gradient_magnitude,
            )

    def on_parameters_updated(self, index: int, magnitude: int) -> None:
        self._record("parameters_updated", index=index, magnitude=magnitude)

    def on_training_completed(self, epochs: int, final_loss: int) -> None:
        self._record("training_completed", epochs=epochs, final_loss=final_loss)

    def names(self) -> List[str]:
        return [event.name for event in self.events]

    def of(self, name: str) -> List[Event]:
        return [event for event in self.events if event.name == name]

    def epoch_losses(self) -> List[Tuple[int, int]]:
        return [(e.payload["epoch"], e.payload["loss"]) for e in self.of("epoch_completed")]


__all__ = ["Event", "EventRecorder"]
