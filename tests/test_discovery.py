from pathlib import Path

import pytest

from app.autotest.discovery import (
    DiscoveryError,
    normalize_case_path,
    scan_cases,
    traverse_dir,
)
from app.autotest.error_codes import ErrorCode
from app.autotest.registry import CaseReference


def _touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("", encoding="utf-8")
    return path


def test_directory_scan_filters_extensions(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    _touch(tmp_path / "cases" / "a.py")
    _touch(tmp_path / "cases" / "b.py")
    _touch(tmp_path / "cases" / "c.txt")

    refs = scan_cases("cases", source_root="src")

    assert [ref.locator for ref in refs] == ["./cases/a.py", "./cases/b.py"]
    assert all(ref.root == Path(".") for ref in refs)


def test_directory_scan_is_depth_first_and_stable(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    for rel in ["cases/z.py", "cases/iot/b.py", "cases/iot/a.py", "cases/alpha/deep/x.py", "cases/m.py"]:
        _touch(tmp_path / rel)

    first = scan_cases("cases", source_root="src")
    second = scan_cases("cases", source_root="src")

    assert first == second
    assert [ref.locator for ref in first] == [
        "./cases/alpha/deep/x.py",
        "./cases/iot/a.py",
        "./cases/iot/b.py",
        "./cases/m.py",
        "./cases/z.py",
    ]


def test_multiple_extensions(tmp_path: Path) -> None:
    _touch(tmp_path / "a.js")
    _touch(tmp_path / "b.cjs")
    _touch(tmp_path / "c.txt")

    files = traverse_dir(str(tmp_path), (".js", ".cjs", ".mjs"))

    assert [Path(f).name for f in files] == ["a.js", "b.cjs"]


def test_single_file_returns_one_reference(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    _touch(tmp_path / "cases" / "iot" / "gateway.py")

    refs = scan_cases("cases/iot/gateway.py", source_root="src")

    assert refs == [CaseReference(locator="./cases/iot/gateway.py", root=Path("."))]
    assert refs[0].name == "gateway"


def test_source_root_prefix_is_stripped(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    _touch(tmp_path / "src" / "cases" / "one.py")

    refs = scan_cases("./src/cases", source_root="src")

    assert refs[0].locator == "./cases/one.py"
    assert refs[0].root == Path("src")
    assert refs[0].path == Path("src/cases/one.py")
    assert refs[0].path.is_file()


@pytest.mark.parametrize(
    "raw, locator, root",
    [
        ("src/cases/a.py", "./cases/a.py", Path("src")),
        ("./src/cases/a.py", "./cases/a.py", Path("src")),
        ("src\\cases\\a.py", "./cases/a.py", Path("src")),
        ("cases/a.py", "./cases/a.py", Path(".")),
        ("./cases/a.py", "./cases/a.py", Path(".")),
        ("srcx/a.py", "./srcx/a.py", Path(".")),
    ],
)
def test_normalize_case_path(raw: str, locator: str, root: Path) -> None:
    ref = normalize_case_path(raw, source_root="src")
    assert ref.locator == locator
    assert ref.root == root


def test_missing_root_is_fatal(tmp_path: Path) -> None:
    with pytest.raises(DiscoveryError) as excinfo:
        scan_cases(tmp_path / "nope")
    assert excinfo.value.error_code == ErrorCode.DISCOVERY


def test_file_without_case_extension_is_fatal(tmp_path: Path) -> None:
    notes = _touch(tmp_path / "notes.txt")
    with pytest.raises(DiscoveryError):
        scan_cases(notes)


def test_empty_directory_yields_nothing(tmp_path: Path) -> None:
    (tmp_path / "empty").mkdir()
    assert scan_cases(tmp_path / "empty") == []


def test_underscore_entries_are_not_cases(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    for rel in [
        "cases/__init__.py",
        "cases/_helpers.py",
        "cases/_shared/login.py",
        "cases/__pycache__/a.py",
        "cases/iot/__init__.py",
        "cases/iot/gateway.py",
    ]:
        _touch(tmp_path / rel)

    refs = scan_cases("cases", source_root="src")

    assert [ref.locator for ref in refs] == ["./cases/iot/gateway.py"]


def test_explicit_underscore_file_is_accepted(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    _touch(tmp_path / "cases" / "_smoke.py")

    assert [ref.locator for ref in scan_cases("cases/_smoke.py", source_root="src")] == ["./cases/_smoke.py"]
