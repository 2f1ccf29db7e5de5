import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.autotest import config, utils


def _configure_temp_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    data_dir = tmp_path / "data"
    data_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.setattr(config, "DATA_DIR", data_dir)
    monkeypatch.setattr(config, "LOG_DIR", data_dir / "logs")
    monkeypatch.setattr(config, "RUNS_DIR", data_dir / "runs")
    monkeypatch.setattr(config, "EXPORTS_DIR", data_dir / "exports")
    return data_dir


@pytest.fixture(autouse=True)
def temp_data_dirs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Keep log files and run telemetry inside the test's tmp_path."""

    data_dir = _configure_temp_paths(tmp_path, monkeypatch)
    utils.close_loggers()
    yield data_dir
    utils.close_loggers()
