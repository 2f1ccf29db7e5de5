"""Per-run telemetry: every settled case lands in ``RUNS_DIR/run_<id>.json``."""

from __future__ import annotations

import json
import time
import uuid
from collections import Counter, defaultdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import config


def _ts() -> str:
    return time.strftime("%Y%m%d_%H%M%S")


class RunTelemetry:
    """Outcome ledger of one run, written out once the engine is idle."""

    def __init__(self, target: str) -> None:
        self.run_id = f"{_ts()}_{uuid.uuid4().hex[:8]}"
        self.target = target
        self.started_at = time.time()
        self.entries: List[Dict[str, Any]] = []
        self._by_status: Counter[str] = Counter()
        self._by_project: Dict[str, Counter[str]] = defaultdict(Counter)

    def record(self, status: str, *, reason: str = "", **meta: Any) -> None:
        """Append one case outcome; ``reason`` is an error code for FAIL."""

        self.entries.append({"status": status, "reason": reason, "at": time.time(), **meta})
        self._by_status[status] += 1
        self._by_project[str(meta.get("project"))][status] += 1

    @property
    def summary(self) -> Dict[str, int]:
        return {f"count_{status}": count for status, count in sorted(self._by_status.items())}

    def finalize(self, extra: Optional[Dict[str, Any]] = None) -> str:
        ended_at = time.time()
        payload = {
            "run_id": self.run_id,
            "target": self.target,
            "started_at": self.started_at,
            "ended_at": ended_at,
            "duration_s": round(ended_at - self.started_at, 3),
            "summary": self.summary,
            "projects": {name: dict(counts) for name, counts in sorted(self._by_project.items())},
            "entries": self.entries,
            **(extra or {}),
        }
        runs_dir = Path(config.RUNS_DIR)
        runs_dir.mkdir(parents=True, exist_ok=True)
        path = runs_dir / f"run_{self.run_id}.json"
        path.write_text(json.dumps(payload, ensure_ascii=False, indent=2, default=str), encoding="utf-8")
        return str(path)


def list_run_files() -> List[str]:
    """Return telemetry JSON paths, oldest first (run ids start with a timestamp)."""

    runs_dir = Path(config.RUNS_DIR)
    if not runs_dir.is_dir():
        return []
    return [str(path) for path in sorted(runs_dir.glob("run_*.json"))]


def load_run(run_id: Optional[str] = None) -> Dict[str, Any]:
    """Load the payload for ``run_id``, or for the latest run when omitted."""

    if run_id:
        path = Path(config.RUNS_DIR) / f"run_{run_id}.json"
        if not path.is_file():
            raise FileNotFoundError(f"Run {run_id} does not exist")
    else:
        runs = list_run_files()
        if not runs:
            raise FileNotFoundError("No run telemetry available")
        path = Path(runs[-1])
    return json.loads(path.read_text(encoding="utf-8"))


def prune_old_exports() -> None:
    """Keep only the newest ``MAX_EXPORTS`` workbooks in ``EXPORTS_DIR``."""

    exports_dir = Path(config.EXPORTS_DIR)
    if not exports_dir.is_dir():
        return
    workbooks = sorted(exports_dir.glob("*.xlsx"))
    for stale in workbooks[: max(0, len(workbooks) - config.MAX_EXPORTS)]:
        stale.unlink(missing_ok=True)


__all__ = [
    "RunTelemetry",
    "list_run_files",
    "load_run",
    "prune_old_exports",
]
