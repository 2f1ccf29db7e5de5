"""Excel export of run telemetry."""

from __future__ import annotations

import os
from typing import Optional

import pandas as pd

from . import config
from .telemetry import load_run, prune_old_exports


def export_run_to_excel(run_id: Optional[str] = None, dest_path: Optional[str] = None) -> str:
    """Create an Excel workbook from a run's telemetry payload.

    ``run_id`` defaults to the most recent run. Raises ``FileNotFoundError``
    when no matching telemetry exists.
    """

    payload = load_run(run_id)

    df = pd.DataFrame(payload.get("entries", []))
    if df.empty:
        df = pd.DataFrame([{"info": "No cases in run"}])

    has_status = "status" in df.columns
    passed = df[df["status"] == "PASS"].copy() if has_status else pd.DataFrame()
    failed = df[df["status"] == "FAIL"].copy() if has_status else pd.DataFrame()

    summary_status = df.groupby("status").size().reset_index(name="count") if has_status else pd.DataFrame()
    summary_project = (
        df.groupby(["project", "status"], dropna=False).size().reset_index(name="count")
        if has_status and "project" in df.columns
        else pd.DataFrame()
    )

    os.makedirs(config.EXPORTS_DIR, exist_ok=True)
    if not dest_path:
        dest_path = os.path.join(config.EXPORTS_DIR, f"cases_{payload['run_id']}.xlsx")

    with pd.ExcelWriter(dest_path, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="All")
        passed.to_excel(writer, index=False, sheet_name="Passed")
        failed.to_excel(writer, index=False, sheet_name="Failed")
        summary_status.to_excel(writer, index=False, sheet_name="Summary_Status")
        if not summary_project.empty:
            summary_project.to_excel(writer, index=False, sheet_name="Summary_Project")

    prune_old_exports()
    return dest_path


__all__ = ["export_run_to_excel"]
