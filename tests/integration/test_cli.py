import json
from pathlib import Path

import pytest

from cli.main import main


def test_cli_runs_preset(tmp_path, capsys):
    run_dir = tmp_path / "run"
    main(["--preset", "xor-relu-sgd", "--epochs", "3", "--run-dir", str(run_dir)])
    assert (run_dir / "metrics_train.jsonl").exists()
    assert (run_dir / "metrics_train.csv").exists()
    assert (run_dir / "manifest.json").exists()
    assert (run_dir / "summary.json").exists()
    assert (run_dir / "metrics_test.json").exists()
    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert payload["epochs"] == 3
    assert "accuracy" in payload["test"]


def test_cli_list_presets(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--list-presets"])
    assert excinfo.value.code == 0
    names = capsys.readouterr().out.split()
    assert {"xor-sigmoid-adam", "xor-relu-sgd", "blobs-linear-momentum"} <= set(names)


def test_cli_merges_yaml_override_and_dumps_config(tmp_path):
    override = tmp_path / "override.yaml"
    override.write_text("train:\n  batch_size: 1\n  learning_rate: 0.2\n")
    dump = tmp_path / "resolved.json"
    main(
        [
            "--preset",
            "blobs-linear-momentum",
            "--config",
            str(override),
            "--epochs",
            "2",
            "--seed",
            "9",
            "--run-dir",
            str(tmp_path / "run"),
            "--dump-config",
            str(dump),
        ]
    )
    resolved = json.loads(dump.read_text())
    assert resolved["train"]["batch_size"] == 1
    assert resolved["train"]["learning_rate"] == 0.2
    assert resolved["train"]["seed"] == 9
    assert resolved["data"]["options"]["seed"] == 9
    assert resolved["model"]["optimizer"]["name"] == "momentum"
    manifest = json.loads(Path(tmp_path / "run" / "manifest.json").read_text())
    assert manifest["dataset"]["seed"] == 9


def test_cli_flags_override_model_and_train_sections(tmp_path, capsys):
    dump = tmp_path / "resolved.json"
    main(
        [
            "--preset",
            "xor-relu-sgd",
            "--epochs",
            "2",
            "--learning-rate",
            "0.2",
            "--loss",
            "mse_descaled",
            "--optimizer",
            "adam",
            "--batch-gradient-mode",
            "averaged",
            "--run-dir",
            str(tmp_path / "run"),
            "--dump-config",
            str(dump),
        ]
    )
    resolved = json.loads(dump.read_text())
    assert resolved["train"]["learning_rate"] == 0.2
    assert resolved["model"]["loss"] == "mse_descaled"
    assert resolved["model"]["optimizer"] == {"name": "adam"}
    assert resolved["model"]["batch_gradient_mode"] == "averaged"
    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert payload["summary"].endswith("summary.json")
    manifest = json.loads(Path(tmp_path / "run" / "manifest.json").read_text())
    assert manifest["model"]["loss"] == "mse"
    assert manifest["model"]["optimizer"] == "adam"
