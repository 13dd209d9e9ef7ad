"""
Command Line Entry Point
========================
Builds one lattice from a JSON settings file.

Usage:
    $ python -m jilattice settings.json --out lattice.h5 --log-level DEBUG
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from jilattice.controller.estimator import estimate_node_count
from jilattice.controller.generator import generate_lattice
from jilattice.logging_config import LOG_LEVELS, setup_logging
from jilattice.model.serialization import save_payload, serialize_lattice
from jilattice.model.settings import LatticeSettings, SettingsError

logger = logging.getLogger("jilattice")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jilattice", description="Generate a just-intonation pitch lattice.")
    parser.add_argument("settings", nargs="?", help="Path to a JSON settings file (defaults if omitted).")
    parser.add_argument("--out", help="Write the lattice payload to this .h5 file.")
    parser.add_argument("--log-level", default="INFO", choices=list(LOG_LEVELS), type=str.upper)
    parser.add_argument("--log-file", help="Also write logs to this file.")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level, log_file=args.log_file)

    data = {}
    if args.settings:
        try:
            with open(args.settings, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Cannot read settings file '{args.settings}': {e}")
            return 1

    try:
        settings = LatticeSettings.from_dict(data)
    except SettingsError as e:
        logger.error(f"Invalid settings: {e}")
        return 1

    logger.info(f"Estimated node count: {estimate_node_count(settings)}")
    graph = generate_lattice(settings)
    logger.info(f"Generated {len(graph.nodes)} nodes and {len(graph.edges)} edges")

    if args.out:
        save_payload(serialize_lattice(graph), args.out)
    return 0


if __name__ == "__main__":
    sys.exit(main())
