"""
Rating pipeline: wires parse → scope tree → cache lookup → engine → merge.

One rate() call rebuilds the scope tree of a file, reuses cached scores for
methods whose text is unchanged, scores the rest concurrently and replaces
the file's cache with exactly the methods seen in this pass.
"""

import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Mapping

from .cache import ScoreCache
from .engine import ScoringEngine
from .errors import EngineError, ScoringFailure
from .models import RatedScope, ScoreResult
from .parse import parse_source, read_source
from .scopes import ScopeNode, ScopeTree

log = logging.getLogger(__name__)

Listener = Callable[[str, list[RatedScope]], None]


def _pool_size(requests: int, max_workers: int | None) -> int:
    limit = max_workers or os.cpu_count() or 1
    return max(1, min(requests, limit))


def _score_concurrently(
    pending: Mapping[str, ScopeNode],
    engine: ScoringEngine,
    max_workers: int | None = None,
) -> dict[str, ScoreResult]:
    """Score each pending code text once. Raises on the first failure."""
    workers = _pool_size(len(pending), max_workers)
    log.debug("Scoring %d snippets on %d workers", len(pending), workers)

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="readscope") as pool:
        futures: dict[str, Future[ScoreResult]] = {
            code: pool.submit(engine.score_with_metrics, code, scope.scope_kind)
            for code, scope in pending.items()
        }
        try:
            # each result is read from the future its code text owns
            return {code: future.result() for code, future in futures.items()}
        except BaseException:
            for future in futures.values():
                future.cancel()
            raise


def rate_methods(
    methods: list[ScopeNode],
    prior: Mapping[str, ScoreResult],
    engine: ScoringEngine,
    max_workers: int | None = None,
) -> tuple[list[RatedScope], dict[str, ScoreResult]]:
    """
    Rate methods against a prior cache.

    Returns (rated scopes in the order of ``methods``, the new cache).
    Identical code texts are sent to the engine once.
    """
    pending: dict[str, ScopeNode] = {}
    hits = 0
    for method in methods:
        code = method.code
        if code in prior:
            hits += 1
            log.debug("Cache hit for %s", method.name)
        elif code not in pending:
            pending[code] = method

    fresh = _score_concurrently(pending, engine, max_workers) if pending else {}

    rated: list[RatedScope] = []
    entries: dict[str, ScoreResult] = {}
    for method in methods:
        code = method.code
        result = fresh[code] if code in fresh else prior[code]
        rated.append(RatedScope(method, result))
        entries[code] = result

    log.info(
        "Rated %d methods (%d cached, %d engine calls)",
        len(methods), hits, len(pending),
    )
    return rated, entries


class RatingPipeline:
    def __init__(
        self,
        engine: ScoringEngine,
        cache: ScoreCache | None = None,
        max_workers: int | None = None,
        language: str = "java",
    ):
        self.engine = engine
        self.cache = cache if cache is not None else ScoreCache()
        self.max_workers = max_workers
        self.language = language
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        """Call ``listener(path, rated)`` after every non-empty rating pass."""
        self._listeners.append(listener)

    def build_tree(self, path: str, source: str | None = None) -> ScopeTree:
        text = source if source is not None else read_source(path)
        return ScopeTree(parse_source(text, self.language), text, path)

    def rate(self, path: str, source: str | None = None) -> list[RatedScope]:
        """
        Rate every method of a file.

        ``source`` is the current editor text; the file is read from disk
        when it is omitted. Raises ScoringFailure or MetricsFailure if any
        method cannot be rated, leaving the cache for ``path`` untouched.
        """
        tree = self.build_tree(path, source)
        methods = tree.methods()
        if not methods:
            log.debug("No methods in %s", path)
            return []

        prior = self.cache.get(path)
        try:
            rated, entries = rate_methods(methods, prior, self.engine, self.max_workers)
        except EngineError as e:
            e.file_path = path
            log.warning("Rating %s failed: %s", path, e)
            raise

        self.cache.replace(path, entries)
        for listener in self._listeners:
            listener(path, rated)
        return rated

    def rate_selection(
        self,
        path: str,
        start_offset: int,
        end_offset: int,
        source: str | None = None,
    ) -> tuple[ScopeNode, ScoreResult]:
        """Score the smallest scope surrounding a marked region, without metrics."""
        tree = self.build_tree(path, source)
        scope = tree.surrounding_scope_for_offsets(start_offset, end_offset)
        if scope is None:
            raise ValueError(f"No scope surrounds offsets {start_offset}-{end_offset} in {path}")
        log.info("Rating %s (lines %d-%d) in %s", scope.name, scope.start_line + 1, scope.end_line + 1, path)
        try:
            return scope, self.engine.score_code(scope.code, scope.scope_kind)
        except ScoringFailure as e:
            e.file_path = path
            raise
