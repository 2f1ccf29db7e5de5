from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Optional

from .utils import case_name_from_path, log_line


@dataclass(frozen=True)
class CaseReference:
    """Locator of a not-yet-loaded case module.

    ``locator`` is the normalized ``./``-prefixed POSIX form produced by
    discovery and is the reference's identity in log lines. ``root`` is the
    directory the locator resolves against.
    """

    locator: str
    root: Path = Path(".")

    @property
    def path(self) -> Path:
        return self.root / self.locator

    @property
    def name(self) -> str:
        return case_name_from_path(self.locator)

    def __str__(self) -> str:
        return self.locator


class CaseRegistry:
    """FIFO queue of case references awaiting dispatch.

    Discovery order is submission order. ``pop_front`` is synchronous, so under
    the single-threaded event loop each reference is handed out exactly once.
    """

    def __init__(self, references: Iterable[CaseReference] = ()) -> None:
        self._queue: deque[CaseReference] = deque(references)
        self._discovered = len(self._queue)

    def pop_front(self) -> Optional[CaseReference]:
        """Remove and return the next reference, or ``None`` when drained."""

        if not self._queue:
            return None
        return self._queue.popleft()

    @property
    def discovered(self) -> int:
        """Total number of references ever added to the registry."""

        return self._discovered

    def __len__(self) -> int:
        return len(self._queue)

    def __bool__(self) -> bool:
        return bool(self._queue)

    def __iter__(self) -> Iterator[CaseReference]:
        return iter(list(self._queue))


def build_registry(references: Iterable[CaseReference]) -> CaseRegistry:
    """Return a registry holding ``references`` in discovery order."""

    registry = CaseRegistry(references)
    log_line(f"[REGISTRY] {len(registry)} case(s) queued")
    return registry


__all__ = ["CaseReference", "CaseRegistry", "build_registry"]
