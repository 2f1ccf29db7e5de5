"""Helpers exposed to case routines through ``crawl.utils``."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd


def read_xlsx(path: str | Path, sheet: Optional[str | int] = 0) -> List[Dict[str, Any]]:
    """Return the rows of one worksheet as dictionaries keyed by header.

    Empty cells come back as ``None`` rather than ``NaN``.
    """

    frame = pd.read_excel(path, sheet_name=sheet, engine="openpyxl")
    frame = frame.astype(object).where(pd.notna(frame), None)
    return frame.to_dict(orient="records")


def write_xlsx(
    path: str | Path,
    rows: Sequence[Dict[str, Any]],
    *,
    sheet: str = "Sheet1",
) -> str:
    """Write ``rows`` to a single-sheet workbook and return its path."""

    dest = Path(path)
    dest.parent.mkdir(parents=True, exist_ok=True)
    frame = pd.DataFrame(list(rows))
    with pd.ExcelWriter(dest, engine="openpyxl") as writer:
        frame.to_excel(writer, index=False, sheet_name=sheet)
    return str(dest)


def default_utils() -> Dict[str, Any]:
    """Utilities handed to every case as ``crawl.utils``."""

    return {"read_xlsx": read_xlsx, "write_xlsx": write_xlsx}


__all__ = ["default_utils", "read_xlsx", "write_xlsx"]
