import json

import pytest

from fixednets.core.errors import InvalidArgumentError
from fixednets.core.fixed import HALF, SCALE, sqrt
from fixednets.data import available_datasets, get_dataset, register_dataset
from fixednets.data.registry import DatasetSpec
from fixednets.reporting.metrics import CsvSink, JsonlSink
from fixednets.reporting.summary import compute_auc, write_summary
from fixednets.training.metrics import compute_metrics, default_metrics, is_correct, threshold


def test_builtin_datasets_registered():
    assert {"xor", "blobs"} <= set(available_datasets())


def test_xor_dataset_is_the_truth_table():
    spec = get_dataset("xor")
    features, labels = spec.split("train")
    assert spec.input_size == 2
    assert spec.task_type == "binary"
    assert labels == [0, SCALE, SCALE, 0]
    assert features[3] == [SCALE, SCALE]


def test_blobs_dataset_is_seeded_and_split():
    a = get_dataset("blobs", n_points=20, seed=4)
    b = get_dataset("blobs", n_points=20, seed=4)
    assert a.splits == b.splits
    assert a.sizes == {"train": 15, "test": 5}
    assert all(isinstance(value, int) for row in a.split("train")[0] for value in row)
    assert set(a.split("train")[1]) <= {0, SCALE}
    with pytest.raises(InvalidArgumentError):
        get_dataset("blobs", test_split=1.5)


def test_unknown_dataset_and_split():
    with pytest.raises(KeyError):
        get_dataset("mnist")
    with pytest.raises(InvalidArgumentError):
        get_dataset("xor").split("validation")


def test_register_dataset_validates_factories():
    @register_dataset("broken_fixture")
    def _broken(**_):
        return DatasetSpec(
            name="broken_fixture",
            task_type="binary",
            input_size=2,
            splits={"train": ([[0, 0]], [0, SCALE])},
        )

    with pytest.raises(ValueError):
        get_dataset("broken_fixture")


def test_threshold_at_half():
    assert threshold(HALF) == 1
    assert threshold(HALF - 1) == 0
    assert is_correct(HALF + 1, SCALE)
    assert not is_correct(HALF - 1, SCALE)


def test_binary_metrics():
    predictions = [SCALE, HALF + 1, 0, HALF - 1]
    targets = [SCALE, 0, 0, SCALE]
    metrics = compute_metrics(default_metrics("binary"), predictions, targets)
    assert metrics["accuracy"] == HALF
    assert metrics["precision"] == HALF
    assert metrics["recall"] == HALF
    assert metrics["f1"] == HALF


def test_regression_metrics():
    metrics = compute_metrics(default_metrics("regression"), [SCALE, 3 * SCALE], [0, SCALE])
    assert metrics["mae"] == 3 * HALF
    assert metrics["rmse"] == sqrt(5 * HALF)


def test_metrics_reject_empty_input():
    with pytest.raises(InvalidArgumentError):
        compute_metrics(["accuracy"], [], [])
    with pytest.raises(KeyError):
        compute_metrics(["auc"], [0], [0])


def test_sinks_write_exact_integers(tmp_path):
    jsonl = JsonlSink(tmp_path / "m.jsonl", seed=3, sha="abc")
    csv_sink = CsvSink(tmp_path / "m.csv")
    for epoch, loss in enumerate([3 * SCALE + 1, SCALE], start=1):
        jsonl.on_epoch(epoch, {"loss": loss, "flag": True})
        csv_sink.on_epoch(epoch, {"loss": loss})
    records = [json.loads(line) for line in (tmp_path / "m.jsonl").read_text().splitlines()]
    assert records[0]["loss"] == 3 * SCALE + 1
    assert "flag" not in records[0]
    assert records[1]["seed"] == 3
    lines = (tmp_path / "m.csv").read_text().splitlines()
    assert lines[0] == "epoch,loss,split"
    assert len(lines) == 3


def test_summary_statistics(tmp_path):
    jsonl = JsonlSink(tmp_path / "m.jsonl", seed=0, sha="abc")
    for epoch, loss in enumerate([4 * SCALE, 2 * SCALE, SCALE], start=1):
        jsonl.on_epoch(epoch, {"loss": loss})
    path = write_summary(tmp_path / "m.jsonl", tmp_path / "summary.json", tail=2)
    summary = json.loads(open(path).read())
    loss = summary["metrics"]["loss"]
    assert summary["records"] == 3
    assert loss["first"] == 4 * SCALE
    assert loss["last"] == SCALE
    assert loss["min"] == SCALE
    assert loss["mean"] == 7 * SCALE // 3
    assert loss["tail_auc"] == compute_auc([2 * SCALE, SCALE]) == 3 * HALF
