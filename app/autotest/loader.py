"""Resolve case references into runnable bundles.

A case module exposes a module-level ``config`` mapping and a ``run`` callable::

    config = {
        "project": "iot",
        "name": "gateway management",
        "entries": [{"url": "https://example.test/gateways"}],
    }

    async def run(page, crawl, options):
        ...

Loading never raises: every problem is returned as a :class:`Failed` outcome
so the dispatcher can report it and move on to the next case.
"""
from __future__ import annotations

import importlib.util
import itertools
import re
import sys
import traceback
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Union

from .error_codes import AutotestError, ErrorCode, describe_error
from .logging_utils import _autotest_event
from .registry import CaseReference

UNDEFINED_PROJECT = "undefined"

_MODULE_COUNTER = itertools.count(1)


class LoadError(AutotestError):
    """The case module could not be found, imported or evaluated."""

    error_code = ErrorCode.LOAD


class MalformedCaseError(AutotestError):
    """The module imported but lacks ``run``, ``config`` or an entry URL."""

    error_code = ErrorCode.MALFORMED_CASE


@dataclass
class CaseBundle:
    """A loaded case: its config mapping plus its run routine."""

    reference: CaseReference
    config: Mapping[str, Any]
    run: Callable[..., Any]

    @property
    def project(self) -> Optional[str]:
        return self.config.get("project")

    @property
    def name(self) -> Optional[str]:
        return self.config.get("name")

    @property
    def entry_url(self) -> str:
        return self.config["entries"][0]["url"]


@dataclass
class Loaded:
    bundle: CaseBundle


@dataclass
class Failed:
    reference: CaseReference
    error: AutotestError

    @property
    def project(self) -> str:
        return UNDEFINED_PROJECT

    @property
    def name(self) -> str:
        return self.reference.name


LoadOutcome = Union[Loaded, Failed]


def _module_name(reference: CaseReference) -> str:
    stem = re.sub(r"\W", "_", reference.name) or "case"
    return f"autotest_case_{next(_MODULE_COUNTER)}_{stem}"


def _import_case_module(reference: CaseReference):
    path = reference.path
    if not path.is_file():
        raise LoadError(f"case file not found: {path}")

    module_name = _module_name(reference)
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise LoadError(f"cannot build an import spec for {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException as exc:  # noqa: BLE001
        sys.modules.pop(module_name, None)
        # sys.exit() and other BaseExceptions at import fail only this case.
        if isinstance(exc, KeyboardInterrupt):
            raise
        raise LoadError(f"failed to evaluate {path}: {describe_error(exc)}") from exc
    return module


def _first_entry_url(config: Mapping[str, Any]) -> Optional[str]:
    entries = config.get("entries")
    if not isinstance(entries, (list, tuple)) or not entries:
        return None
    first = entries[0]
    if not isinstance(first, Mapping):
        return None
    url = first.get("url")
    if not isinstance(url, str) or not url.strip():
        return None
    return url


def validate_case_module(module: Any, reference: CaseReference) -> CaseBundle:
    """Check the ``{config, run}`` shape of an imported case module."""

    run = getattr(module, "run", None)
    config = getattr(module, "config", None)
    if not callable(run) or not isinstance(config, Mapping) or _first_entry_url(config) is None:
        raise MalformedCaseError(
            f"failed to import case: {reference}, missing run(), config object or entry url"
        )
    return CaseBundle(reference=reference, config=config, run=run)


def load_case(reference: CaseReference) -> LoadOutcome:
    """Resolve ``reference`` to a :class:`Loaded` or :class:`Failed` outcome."""

    try:
        module = _import_case_module(reference)
    except LoadError as exc:
        if exc.__cause__ is not None:
            tb = "".join(traceback.format_exception(exc.__cause__))
            _autotest_event("load", phase="import", case=str(reference), traceback=tb)
        return Failed(reference=reference, error=exc)
    except Exception as exc:  # noqa: BLE001
        error = LoadError(f"failed to import {reference}: {describe_error(exc)}")
        error.__cause__ = exc
        return Failed(reference=reference, error=error)

    try:
        bundle = validate_case_module(module, reference)
    except MalformedCaseError as exc:
        return Failed(reference=reference, error=exc)

    _autotest_event(
        "load",
        phase="loaded",
        case=str(reference),
        project=bundle.project,
        name=bundle.name,
        url=bundle.entry_url,
    )
    return Loaded(bundle=bundle)


__all__ = [
    "CaseBundle",
    "Failed",
    "LoadError",
    "LoadOutcome",
    "Loaded",
    "MalformedCaseError",
    "UNDEFINED_PROJECT",
    "load_case",
    "validate_case_module",
]
