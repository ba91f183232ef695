"""Per-file score cache keyed by exact method source text."""

import logging
import threading
from types import MappingProxyType
from typing import Mapping

from .models import ScoreResult

log = logging.getLogger(__name__)

_EMPTY: Mapping[str, ScoreResult] = MappingProxyType({})


class ScoreCache:
    """
    file path → (code text → ScoreResult).

    Keys are compared byte for byte; whitespace differences are misses.
    A file's entries are only ever replaced as a whole, so whatever the
    previous pass did not re-key is gone after the next replace().
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._files: dict[str, Mapping[str, ScoreResult]] = {}

    def get(self, path: str) -> Mapping[str, ScoreResult]:
        with self._lock:
            return self._files.get(path, _EMPTY)

    def replace(self, path: str, entries: Mapping[str, ScoreResult]) -> None:
        frozen = MappingProxyType(dict(entries))
        with self._lock:
            self._files[path] = frozen
        log.debug("Cache for %s now holds %d entries", path, len(frozen))

    def drop(self, path: str) -> None:
        with self._lock:
            self._files.pop(path, None)

    def paths(self) -> list[str]:
        with self._lock:
            return list(self._files)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._files

    def __len__(self) -> int:
        with self._lock:
            return len(self._files)
