"""CLI helper for printing run-level test summaries."""

from __future__ import annotations

import argparse
from typing import Sequence

from . import telemetry
from .export_excel import export_run_to_excel


def _build_parser() -> argparse.ArgumentParser:
    """Return an argument parser for the run summary CLI."""

    parser = argparse.ArgumentParser(
        description="Show the PASS/FAIL summary of a test run.",
    )
    parser.add_argument(
        "--run-id",
        help="Run ID to summarise (defaults to the latest run).",
    )
    parser.add_argument(
        "--export",
        action="store_true",
        help="Also write the run to an Excel workbook.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the run summary CLI."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        payload = telemetry.load_run(args.run_id)
    except FileNotFoundError as exc:
        parser.error(str(exc))

    print(f"Run {payload['run_id']} ({payload.get('target')})")
    for key, count in sorted(payload.get("summary", {}).items()):
        print(f"  {key.replace('count_', '')}: {count}")

    projects = payload.get("projects") or {}
    if projects:
        print("\nBy project:")
        for project, counts in projects.items():
            tally = ", ".join(f"{status}={n}" for status, n in sorted(counts.items()))
            print(f"  {project}: {tally}")

    failures = [entry for entry in payload.get("entries", []) if entry.get("status") != "PASS"]
    if failures:
        print("\nFailed cases:")
        for entry in failures:
            print(f"  {entry.get('project')} / {entry.get('name')}: {entry.get('reason')}")

    if args.export:
        path = export_run_to_excel(payload["run_id"])
        print(f"\nExported to {path}")

    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
