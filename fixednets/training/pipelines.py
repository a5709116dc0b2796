"""Config-driven assembly and execution of training runs."""

from __future__ import annotations

import json
import logging
import time
from copy import deepcopy
from pathlib import Path
from typing import Dict, List, Mapping, Sequence

import yaml

from ..core.errors import InvalidArgumentError
from ..core.fixed import from_float
from ..core.optimizers import build_optimizer
from ..core.types import RunResult
from ..data import get_dataset
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.summary import write_summary
from .losses import REGISTRY as LOSS_REGISTRY
from .metrics import compute_metrics, default_metrics
from .network import Network

logger = logging.getLogger(__name__)

_PRESETS: Dict[str, Mapping[str, object]] = {
    "xor-sigmoid-adam": {
        "data": {"name": "xor", "options": {}},
        "model": {
            "output_size": 1,
            "layers": [
                {"type": "dense", "size": 4, "activation": "sigmoid"},
                {"type": "dense", "size": 1, "activation": "sigmoid"},
            ],
            "loss": "bce",
            "optimizer": {"name": "adam"},
            "batch_gradient_mode": "last_sample_only",
        },
        "train": {
            "epochs": 500,
            "learning_rate": 0.1,
            "batch_size": 1,
            "seed": 0,
            "run_dir": "runs/xor-sigmoid-adam",
        },
    },
    "xor-relu-sgd": {
        "data": {"name": "xor", "options": {}},
        "model": {
            "output_size": 1,
            "layers": [
                {"type": "dense", "size": 4},
                {"type": "activation", "activation": "relu"},
                {"type": "dense", "size": 1, "activation": "sigmoid"},
            ],
            "loss": "mse",
            "optimizer": {"name": "sgd"},
        },
        "train": {
            "epochs": 50,
            "learning_rate": 0.05,
            "batch_size": 2,
            "seed": 3,
            "run_dir": "runs/xor-relu-sgd",
        },
    },
    "blobs-linear-momentum": {
        "data": {"name": "blobs", "options": {"n_points": 32, "seed": 0}},
        "model": {
            "output_size": 1,
            "layers": [{"type": "dense", "size": 1, "activation": "sigmoid"}],
            "loss": "auto",
            "optimizer": {"name": "momentum", "momentum": 0.9},
            "batch_gradient_mode": "averaged",
        },
        "train": {
            "epochs": 20,
            "learning_rate": 0.05,
            "batch_size": 4,
            "seed": 1,
            "run_dir": "runs/blobs-linear-momentum",
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_FILE_PRESETS_CACHE: Dict[str, Mapping[str, object]] | None = None


def read_config_file(path: Path) -> Mapping[str, object]:
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Config {path.name} must decode to a mapping")
    return data


def _file_presets() -> Dict[str, Mapping[str, object]]:
    global _FILE_PRESETS_CACHE
    if _FILE_PRESETS_CACHE is None:
        found: Dict[str, Mapping[str, object]] = {}
        if _PRESET_DIR.exists():
            for file in sorted(_PRESET_DIR.iterdir()):
                if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
                    continue
                data = read_config_file(file)
                missing = {"data", "model", "train"} - set(data)
                if missing:
                    missing_str = ", ".join(sorted(missing))
                    raise KeyError(f"Preset {file.name} is missing required sections: {missing_str}")
                found[file.stem] = json.loads(json.dumps(data))
        _FILE_PRESETS_CACHE = found
    return {name: deepcopy(cfg) for name, cfg in (_FILE_PRESETS_CACHE or {}).items()}


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {}
    combined.update({name: deepcopy(cfg) for name, cfg in _PRESETS.items()})
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Mapping[str, object]:
    file_overrides = _file_presets()
    if name in file_overrides:
        return file_overrides[name]
    try:
        return deepcopy(_PRESETS[name])
    except KeyError as exc:
        raise KeyError(f"Unknown preset: {name}") from exc


def _fixed(value: object) -> int:
    """Config values may be decimals (``0.1``) or raw fixed-point ints."""

    if isinstance(value, bool):
        raise InvalidArgumentError(f"expected a number, got {value!r}")
    if isinstance(value, int):
        return value
    return from_float(value)


def build_network(
    model_cfg: Mapping[str, object],
    *,
    input_size: int,
    task_type: str,
    learning_rate: int,
    batch_size: int,
    seed: int,
    callbacks: Sequence[object] = (),
) -> Network:
    """Assemble a :class:`Network` from the ``model`` config section."""

    optimizer_cfg = model_cfg.get("optimizer", "sgd")
    if isinstance(optimizer_cfg, str):
        optimizer_cfg = {"name": optimizer_cfg}
    optimizer_cfg = dict(optimizer_cfg)
    optimizer_name = str(optimizer_cfg.pop("name", "sgd"))
    optimizer = build_optimizer(
        optimizer_name, **{key: _fixed(value) for key, value in optimizer_cfg.items()}
    )
    loss = LOSS_REGISTRY.resolve(str(model_cfg.get("loss", "auto")), task_type=task_type)

    network = Network(
        int(model_cfg.get("input_size", input_size)),
        int(model_cfg.get("output_size", 1)),
        loss,
        optimizer,
        learning_rate=learning_rate,
        batch_size=batch_size,
        batch_gradient_mode=str(model_cfg.get("batch_gradient_mode", "last_sample_only")),
        seed=seed,
        callbacks=callbacks,
    )
    layers = model_cfg.get("layers") or []
    if not layers:
        raise InvalidArgumentError("model config needs at least one layer")
    for layer_cfg in layers:
        kind = str(layer_cfg.get("type", "dense"))
        if kind == "dense":
            network.add_dense_layer(
                int(layer_cfg["size"]),
                use_bias=bool(layer_cfg.get("use_bias", True)),
                activation=layer_cfg.get("activation"),
            )
        elif kind == "activation":
            network.add_activation_layer(str(layer_cfg["activation"]))
        else:
            raise InvalidArgumentError(f"Unknown layer type: {kind}")
    return network


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    """Train the configured network and write metrics, summary and manifest."""

    data_cfg = dict(config["data"])
    model_cfg = dict(config["model"])
    train_cfg = dict(config["train"])

    dataset = get_dataset(str(data_cfg["name"]), **dict(data_cfg.get("options", {})))
    features, labels = dataset.split("train")

    seed = int(train_cfg.get("seed", 0))
    epochs = int(train_cfg.get("epochs", 1))
    batch_size = int(train_cfg.get("batch_size", 1))
    learning_rate = _fixed(train_cfg.get("learning_rate", 0.01))

    run_dir = _resolve_run_dir(train_cfg, dataset.name)
    run_dir.mkdir(parents=True, exist_ok=True)
    train_jsonl = JsonlSink(run_dir / "metrics_train.jsonl", split="train", seed=seed)
    train_csv = CsvSink(run_dir / "metrics_train.csv", split="train")

    network = build_network(
        model_cfg,
        input_size=dataset.input_size,
        task_type=dataset.task_type,
        learning_rate=learning_rate,
        batch_size=batch_size,
        seed=seed,
        callbacks=[train_jsonl, train_csv],
    )

    _print_startup_summary(
        dataset_name=dataset.name,
        architecture=[f"{info.kind.value}:{info.output_size}:{info.activation}" for info in network.get_network_architecture()],
        loss=network.loss.name,
        optimizer=network.optimizer.name,
        mode=network.batch_gradient_mode.value,
        param_count=network.parameter_count(),
    )

    result = network.train(features, labels, epochs, learning_rate)

    test_metrics: Dict[str, int] = {}
    if "test" in dataset.splits and network.output_size == 1:
        test_x, test_y = dataset.split("test")
        evaluation = network.evaluate(test_x, test_y)
        predictions = network.predict_batch(test_x)
        test_metrics = {"loss": evaluation.loss, "accuracy": evaluation.accuracy}
        if dataset.task_type == "binary":
            test_metrics.update(compute_metrics(default_metrics("binary"), predictions, test_y))
    (run_dir / "metrics_test.json").write_text(json.dumps(test_metrics, indent=2, sort_keys=True))

    safe_config = json.loads(json.dumps(config))
    (run_dir / "config.json").write_text(json.dumps(safe_config, indent=2))
    info = network.get_model_info()
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=safe_config,
        dataset_provenance=dataset.provenance,
        model_info={
            "parameter_count": info.parameter_count,
            "layer_count": info.layer_count,
            "loss": info.loss,
            "optimizer": info.optimizer,
            "batch_gradient_mode": info.batch_gradient_mode.value,
        },
    )
    summary_path = write_summary(
        train_jsonl.path, run_dir / "summary.json", tail=int(train_cfg.get("summary_tail", 32))
    )
    logger.info("Run written to %s", run_dir)
    return RunResult(
        epochs=len(network.get_training_history()),
        final_loss=result.final_loss,
        metrics_path=str(train_jsonl.path),
        manifest_path=manifest,
        summary_path=summary_path,
        test_metrics=test_metrics,
    )


def _resolve_run_dir(train_cfg: Mapping[str, object], dataset: str) -> Path:
    if "run_dir" in train_cfg:
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset


def _print_startup_summary(
    *,
    dataset_name: str,
    architecture: List[str],
    loss: str,
    optimizer: str,
    mode: str,
    param_count: int,
) -> None:
    print("=== fixednets run ===")
    print(f"Dataset       : {dataset_name}")
    print(f"Layers        : {architecture}")
    print(f"Loss          : {loss}")
    print(f"Optimizer     : {optimizer}")
    print(f"Batch mode    : {mode}")
    print(f"Parameters    : {param_count}")
    print("=====================")


__all__ = ["build_network", "load_preset", "presets", "read_config_file", "run_pipeline"]
