"""
Command line entry point.

    threestep render CONFIG DATA [--yaml]   write stage-1 .inp/.dat only
    threestep run CONFIG DATA               run all three stages
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import pandas as pd

from threestep.backends.mplus_generator import save_input_file
from threestep.builder import build_measurement_spec
from threestep.config import load_config
from threestep.errors import ThreeStepError
from threestep.logging_utils import setup_logging
from threestep.pipeline import ThreeStepPipeline
from threestep.serialization import spec_to_yaml


def _read_data(path: str) -> pd.DataFrame:
    try:
        return pd.read_csv(path)
    except FileNotFoundError:
        raise ThreeStepError(f"Data file not found: {path}")
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as exc:
        raise ThreeStepError(f"Could not read data file {path}: {exc}")


def _render(args) -> int:
    config = load_config(args.config)
    spec = build_measurement_spec(config, _read_data(args.data))
    rendered = save_input_file(spec, config.output_dir)
    print(f"Wrote {rendered.input_path}")
    print(f"Wrote {rendered.data_path}")
    if args.yaml:
        print(spec_to_yaml(spec), end="")
    return 0


def _run(args) -> int:
    config = load_config(args.config)
    result = ThreeStepPipeline(config).run(_read_data(args.data))

    print("Step 1 logits (reference class %d):" % result.step1.logits.reference_class)
    print(result.step1.logits.to_frame().to_string())
    print(f"Largest class proportion shift (step 1 -> step 2): {result.proportion_shift:.3f}")
    for outcome in (result.step1, result.step2, result.step3):
        if outcome is not None:
            print(f"{outcome.spec.name}: {outcome.rendered.output_path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="threestep",
        description="Manual ML three-step latent class analysis driven through Mplus",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", help="Also write the log to this file")
    sub = parser.add_subparsers(dest="command", required=True)

    render = sub.add_parser("render", help="Write the stage-1 input and data files")
    render.add_argument("config", help="Pipeline configuration (YAML)")
    render.add_argument("data", help="Input data (CSV with a header row)")
    render.add_argument("--yaml", action="store_true", help="Print the stage-1 spec as YAML")
    render.set_defaults(func=_render)

    run = sub.add_parser("run", help="Run all three stages")
    run.add_argument("config", help="Pipeline configuration (YAML)")
    run.add_argument("data", help="Input data (CSV with a header row)")
    run.set_defaults(func=_run)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        log_file=Path(args.log_file) if args.log_file else None,
    )
    try:
        return args.func(args)
    except ThreeStepError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
