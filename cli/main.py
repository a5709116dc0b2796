"""Command line entry point for fixednets training runs."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Iterable

from fixednets.core.types import BatchGradientMode
from fixednets.training import pipelines
from fixednets.training.losses import REGISTRY as LOSS_REGISTRY

_OPTIMIZERS = ("sgd", "momentum", "adam")


def _format_result(result) -> str:
    payload = {
        "epochs": result.epochs,
        "final_loss": result.final_loss,
        "metrics": result.metrics_path,
        "manifest": result.manifest_path,
        "summary": result.summary_path,
    }
    if result.test_metrics:
        payload["test"] = result.test_metrics
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=sorted(pipelines.presets()),
        default="xor-sigmoid-adam",
        help="Preset configuration to execute",
    )
    parser.add_argument("--config", type=Path, help="JSON/YAML file merged over the preset")
    parser.add_argument("--seed", type=int, help="Seed for weight initialisation and blob data")
    parser.add_argument("--epochs", type=int, help="Override the number of epochs")
    parser.add_argument(
        "--learning-rate", type=float, help="Learning rate as a decimal, e.g. 0.05"
    )
    parser.add_argument(
        "--loss", choices=["auto", *LOSS_REGISTRY.names()], help="Override the loss strategy"
    )
    parser.add_argument("--optimizer", choices=_OPTIMIZERS, help="Override the optimizer")
    parser.add_argument(
        "--batch-gradient-mode",
        choices=[mode.value for mode in BatchGradientMode],
        help="How gradients inside a mini-batch are combined",
    )
    parser.add_argument("--run-dir", type=Path, help="Directory receiving run artifacts")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    parser.add_argument("--list-presets", action="store_true", help="Print preset names and exit")
    parser.add_argument("--dump-config", type=Path, help="Write the resolved config as JSON")
    return parser.parse_args(argv)


def _merge(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(dict(base[key]), value)
        else:
            base[key] = value
    return base


def resolve_config(args: argparse.Namespace) -> dict:
    """Preset, then ``--config`` file, then individual flags."""

    config = json.loads(json.dumps(pipelines.load_preset(args.preset)))
    if args.config:
        config = _merge(config, json.loads(json.dumps(pipelines.read_config_file(args.config))))

    model_cfg = config.setdefault("model", {})
    train_cfg = config.setdefault("train", {})
    if args.seed is not None:
        train_cfg["seed"] = args.seed
        if config.get("data", {}).get("name") == "blobs":
            config["data"].setdefault("options", {})["seed"] = args.seed
    if args.epochs is not None:
        train_cfg["epochs"] = args.epochs
    if args.learning_rate is not None:
        train_cfg["learning_rate"] = args.learning_rate
    if args.run_dir is not None:
        train_cfg["run_dir"] = str(args.run_dir)
    if args.loss is not None:
        model_cfg["loss"] = args.loss
    if args.optimizer is not None:
        model_cfg["optimizer"] = {"name": args.optimizer}
    if args.batch_gradient_mode is not None:
        model_cfg["batch_gradient_mode"] = args.batch_gradient_mode
    return config


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.list_presets:
        for name in sorted(pipelines.presets()):
            print(name)
        raise SystemExit(0)

    config = resolve_config(args)
    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    print(_format_result(pipelines.run_pipeline(config)))


if __name__ == "__main__":
    main()
