from __future__ import annotations

import json
from pathlib import Path

import pytest

from fixednets.core.errors import InvalidArgumentError
from fixednets.core.fixed import SCALE
from fixednets.core.types import LayerKind
from fixednets.training import pipelines


def test_presets_have_required_sections():
    for name, config in pipelines.presets().items():
        assert {"data", "model", "train"} <= set(config), name


def test_load_preset_returns_copies():
    first = pipelines.load_preset("xor-sigmoid-adam")
    first["train"]["epochs"] = 1
    assert pipelines.load_preset("xor-sigmoid-adam")["train"]["epochs"] == 500
    with pytest.raises(KeyError):
        pipelines.load_preset("does-not-exist")


def test_build_network_from_config():
    config = pipelines.load_preset("xor-relu-sgd")
    net = pipelines.build_network(
        config["model"],
        input_size=2,
        task_type="binary",
        learning_rate=10**16,
        batch_size=2,
        seed=0,
    )
    kinds = [info.kind for info in net.get_network_architecture()]
    assert kinds == [LayerKind.DENSE, LayerKind.ACTIVATION, LayerKind.DENSE]
    assert net.loss.name == "mse"
    assert net.optimizer.name == "sgd"


def test_build_network_converts_optimizer_options():
    model = {
        "layers": [{"type": "dense", "size": 1}],
        "loss": "auto",
        "optimizer": {"name": "adam", "beta1": 0.8},
    }
    net = pipelines.build_network(
        model, input_size=3, task_type="regression", learning_rate=SCALE, batch_size=1, seed=0
    )
    assert net.optimizer.beta1 == 8 * 10**17
    assert net.loss.name == "mse"
    assert net.input_size == 3


def test_build_network_rejects_bad_layers():
    with pytest.raises(InvalidArgumentError):
        pipelines.build_network(
            {"layers": []}, input_size=2, task_type="binary", learning_rate=1, batch_size=1, seed=0
        )
    with pytest.raises(InvalidArgumentError):
        pipelines.build_network(
            {"layers": [{"type": "conv", "size": 2}]},
            input_size=2,
            task_type="binary",
            learning_rate=1,
            batch_size=1,
            seed=0,
        )


def test_run_pipeline_writes_artifacts(tmp_path):
    config = pipelines.load_preset("blobs-linear-momentum")
    config["train"]["epochs"] = 3
    config["train"]["run_dir"] = str(tmp_path)
    result = pipelines.run_pipeline(config)

    assert result.epochs == 3
    records = [json.loads(line) for line in Path(result.metrics_path).read_text().splitlines()]
    assert [record["epoch"] for record in records] == [1, 2, 3]
    assert records[-1]["loss"] == result.final_loss
    manifest = json.loads(Path(result.manifest_path).read_text())
    assert manifest["dataset"]["type"] == "blobs"
    assert manifest["model"]["batch_gradient_mode"] == "averaged"
    assert set(result.test_metrics) >= {"loss", "accuracy", "precision", "recall", "f1"}
    assert json.loads((tmp_path / "config.json").read_text()) == config


def test_read_config_file_rejects_unknown_suffix(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("x = 1")
    with pytest.raises(ValueError):
        pipelines.read_config_file(path)
