from pathlib import Path

import pandas as pd
import pytest

from app.autotest import config, run_summary_cli, telemetry
from app.autotest.error_codes import ErrorCode
from app.autotest.export_excel import export_run_to_excel


def _record_run(target: str = "cases/iot") -> telemetry.RunTelemetry:
    run = telemetry.RunTelemetry(target=target)
    run.record("PASS", project="iot", name="gateway management", url="https://example.test/g")
    run.record("FAIL", reason=ErrorCode.NAVIGATION, project="iot", name="device list", url="https://example.test/d")
    run.record("FAIL", reason=ErrorCode.MALFORMED_CASE, project="undefined", name="broken", url=None)
    run.finalize({"discovered": 3})
    return run


def test_finalize_writes_run_payload() -> None:
    run = _record_run()

    payload = telemetry.load_run(run.run_id)

    assert payload["target"] == "cases/iot"
    assert payload["summary"] == {"count_PASS": 1, "count_FAIL": 2}
    assert payload["discovered"] == 3
    assert payload["projects"] == {"iot": {"PASS": 1, "FAIL": 1}, "undefined": {"FAIL": 1}}
    assert [entry["name"] for entry in payload["entries"]] == ["gateway management", "device list", "broken"]
    assert telemetry.list_run_files() == [str(Path(config.RUNS_DIR) / f"run_{run.run_id}.json")]


def test_load_run_without_runs_raises() -> None:
    with pytest.raises(FileNotFoundError):
        telemetry.load_run()


def test_run_summary_cli_prints_summary(capsys: pytest.CaptureFixture) -> None:
    run = _record_run()

    exit_code = run_summary_cli.main(["--run-id", run.run_id])
    assert exit_code == 0

    out = capsys.readouterr().out
    assert f"Run {run.run_id} (cases/iot)" in out
    assert "FAIL: 2" in out
    assert "PASS: 1" in out
    assert "iot: FAIL=1, PASS=1" in out
    assert "Failed cases:" in out
    assert f"iot / device list: {ErrorCode.NAVIGATION}" in out
    assert f"undefined / broken: {ErrorCode.MALFORMED_CASE}" in out


def test_run_summary_cli_defaults_to_latest_run(capsys: pytest.CaptureFixture) -> None:
    run = _record_run()

    assert run_summary_cli.main([]) == 0
    assert f"Run {run.run_id}" in capsys.readouterr().out


def test_run_summary_cli_errors_for_unknown_run(capsys: pytest.CaptureFixture) -> None:
    with pytest.raises(SystemExit) as excinfo:
        run_summary_cli.main(["--run-id", "12345"])

    assert excinfo.value.code == 2
    err = capsys.readouterr().err
    assert "Run 12345 does not exist" in err


def test_run_summary_cli_export(capsys: pytest.CaptureFixture) -> None:
    run = _record_run()

    assert run_summary_cli.main(["--run-id", run.run_id, "--export"]) == 0

    out = capsys.readouterr().out
    assert "Exported to" in out
    exported = Path(config.EXPORTS_DIR) / f"cases_{run.run_id}.xlsx"
    assert exported.is_file()


def test_export_sheets_split_by_status(tmp_path: Path) -> None:
    run = _record_run()
    dest = tmp_path / "report.xlsx"

    path = export_run_to_excel(run.run_id, dest_path=str(dest))

    sheets = pd.read_excel(path, sheet_name=None, engine="openpyxl")
    assert set(sheets) == {"All", "Passed", "Failed", "Summary_Status", "Summary_Project"}
    assert len(sheets["All"]) == 3
    assert list(sheets["Passed"]["name"]) == ["gateway management"]
    assert sorted(sheets["Failed"]["name"]) == ["broken", "device list"]
    counts = dict(zip(sheets["Summary_Status"]["status"], sheets["Summary_Status"]["count"]))
    assert counts == {"FAIL": 2, "PASS": 1}


def test_old_exports_are_pruned(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "MAX_EXPORTS", 2)
    exports = Path(config.EXPORTS_DIR)
    exports.mkdir(parents=True)
    for stamp in ("20240101", "20240102", "20240103"):
        (exports / f"cases_{stamp}.xlsx").write_bytes(b"")

    telemetry.prune_old_exports()

    assert sorted(p.name for p in exports.iterdir()) == ["cases_20240102.xlsx", "cases_20240103.xlsx"]


def test_module_docstring() -> None:
    assert run_summary_cli.__doc__ == "CLI helper for printing run-level test summaries."
