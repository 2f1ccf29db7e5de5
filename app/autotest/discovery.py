"""Discovery of test-case modules on disk."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, List, Optional

from . import config
from .error_codes import AutotestError, ErrorCode
from .logging_utils import _autotest_event
from .registry import CaseReference


class DiscoveryError(AutotestError):
    """Raised when the case root cannot be enumerated. Fatal for the run."""

    error_code = ErrorCode.DISCOVERY


def _has_case_extension(path: str, extensions: Iterable[str]) -> bool:
    return os.path.splitext(path)[1].lower() in set(extensions)


def traverse_dir(directory: str, extensions: Iterable[str] = config.CASE_EXTENSIONS) -> List[str]:
    """Return every case file below ``directory`` depth-first.

    Entries are visited in name order at each level so the result is stable
    across runs and platforms. Symlinked directories are not followed, and
    names starting with ``_`` (``__init__.py``, helper modules, ``__pycache__``)
    are skipped.
    """

    extensions = tuple(extensions)
    files: List[str] = []
    with os.scandir(directory) as it:
        entries = sorted(it, key=lambda entry: entry.name)

    for entry in entries:
        if entry.name.startswith("_"):
            continue
        full_path = f"{directory.rstrip('/')}/{entry.name}" if directory else entry.name
        if entry.is_dir(follow_symlinks=False):
            files.extend(traverse_dir(full_path, extensions))
        elif _has_case_extension(full_path, extensions):
            files.append(full_path)
    return files


def normalize_case_path(path: str | Path, *, source_root: Optional[str] = None) -> CaseReference:
    """Turn a filesystem path into a :class:`CaseReference`.

    Paths are enumerated relative to the working directory, but a leading
    ``<source_root>/`` (or ``./<source_root>/``) is stripped and the reference
    then resolves against ``source_root`` instead. Relative locators always
    carry a ``./`` prefix.
    """

    source_root = config.SOURCE_ROOT if source_root is None else source_root
    posix = str(path).replace("\\", "/")

    if os.path.isabs(posix):
        return CaseReference(locator=posix, root=Path("."))

    root = Path(".")
    prefix = source_root.replace("\\", "/").strip("/")
    if prefix:
        for candidate in (f"{prefix}/", f"./{prefix}/"):
            if posix.startswith(candidate):
                posix = posix[len(candidate):]
                root = Path(prefix)
                break

    locator = posix if posix.startswith("./") else f"./{posix}"
    return CaseReference(locator=locator, root=root)


def scan_cases(
    root: str | Path,
    *,
    extensions: Optional[Iterable[str]] = None,
    source_root: Optional[str] = None,
) -> List[CaseReference]:
    """Return the ordered case references found at ``root``.

    ``root`` is either a single case file or a directory searched recursively.
    Raises :class:`DiscoveryError` when it does not exist or is a file without
    a recognised extension.
    """

    extensions = tuple(extensions) if extensions is not None else config.CASE_EXTENSIONS
    root_str = str(root).replace("\\", "/")
    root_path = Path(root_str)

    if not root_path.exists():
        _autotest_event("error", phase="discovery", root=root_str, error="not_found")
        raise DiscoveryError(f"case path does not exist: {root_str}")

    if root_path.is_file():
        if not _has_case_extension(root_str, extensions):
            _autotest_event("error", phase="discovery", root=root_str, error="bad_extension")
            raise DiscoveryError(
                f"not a case file (expected one of {', '.join(extensions)}): {root_str}"
            )
        files = [root_str]
    else:
        try:
            files = traverse_dir(root_str, extensions)
        except OSError as exc:
            raise DiscoveryError(f"cannot read case directory {root_str}: {exc}") from exc

    references = [normalize_case_path(item, source_root=source_root) for item in files]
    _autotest_event("state", phase="discovery", root=root_str, count=len(references))
    return references


__all__ = ["DiscoveryError", "normalize_case_path", "scan_cases", "traverse_dir"]
