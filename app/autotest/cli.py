"""Command-line entry point: ``autotest [-?] [-h] [-v] [-c path_of_case(s)]``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Sequence

from .config_validation import validate_runtime_config
from .discovery import DiscoveryError
from .runner import run_cases
from .utils import close_loggers, log_line, setup_run_logger

USAGE = """
Usage:
  $ autotest [-?] [-h] [-v] [-c path_of_case(s)]

Options:
  -?, --help           show this help
  -h, --help           show this help
  -v, --verbose        enable verbose output
  -c, --case PATH      run a single case file or every case under a directory

a few examples:
  $ autotest
  $ autotest -c cases/iot
  $ autotest -v -c cases/iot/gateway_management.py
"""


def _build_parser() -> argparse.ArgumentParser:
    """Return the argument parser; help is handled by :func:`main`."""

    parser = argparse.ArgumentParser(prog="autotest", add_help=False, usage=USAGE)
    parser.add_argument("-?", "-h", "--help", dest="help", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("-c", "--case", default=None)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the selected cases; return the process exit status."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    if args.help:
        print(USAGE)
        return 1

    setup_run_logger(verbose=args.verbose)
    try:
        try:
            validate_runtime_config("cli")
        except ValueError:
            return 1

        try:
            asyncio.run(run_cases(args.case))
        except DiscoveryError as exc:
            log_line(f"case discovery failed: {exc}", logging.ERROR)
            return 1
        return 0
    finally:
        close_loggers()


if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())
