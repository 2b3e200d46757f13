#!/usr/bin/env python3
"""Run the trading simulator headlessly from a YAML config.

Examples::

    python run_simulation.py --config config/example.yaml
    python run_simulation.py --config config/example.yaml --seed 7 --log-level DEBUG

Prices tick ``num_ticks`` times over the in-memory demo universe while news
stories move sentiment and a random demo trader buys and sells. Output goes
to ``<output-dir>/<config stem>/``. ``SIM_LOG_LEVEL`` in the environment or
a ``.env`` file sets the default log level.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

from models.config import SimulationConfig
from simulation.runner import HeadlessRunner

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _default_log_level() -> str:
    """``SIM_LOG_LEVEL`` if it names a known level, else INFO."""
    level = os.getenv("SIM_LOG_LEVEL", "INFO").strip().upper()
    return level if level in LOG_LEVELS else "INFO"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Headless stock-trading simulation.")
    parser.add_argument("--config", required=True, help="YAML run configuration.")
    parser.add_argument(
        "--output-dir",
        default="results",
        help="Parent directory for run output (default: %(default)s).",
    )
    parser.add_argument(
        "--log-level",
        default=_default_log_level(),
        choices=LOG_LEVELS,
        help="Log verbosity (default: $SIM_LOG_LEVEL or INFO).",
    )
    parser.add_argument("--seed", type=int, help="Override the config's random seed.")
    return parser


async def _run(args: argparse.Namespace) -> dict:
    log = logging.getLogger("run_simulation")
    config = SimulationConfig.from_yaml(args.config)
    if args.seed is not None:
        config = config.model_copy(update={"seed": args.seed})
    log.info("Config %s: %d tick(s), seed=%s", args.config, config.num_ticks, config.seed)
    return await HeadlessRunner(config, args.config, args.output_dir).run()


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)-7s %(name)s | %(message)s",
        stream=sys.stdout,
    )
    asyncio.run(_run(args))


if __name__ == "__main__":
    main()
