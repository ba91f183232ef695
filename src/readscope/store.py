"""DuckDB persistence for score caches, so repeated CLI runs reuse prior scores.

DuckDB connections are not thread-safe; every public method holds a
threading.Lock for the full execute-through-fetch.
"""

import json
import logging
import threading
from typing import Mapping

import duckdb

from .cache import ScoreCache
from .models import ScoreResult

log = logging.getLogger(__name__)

_DDL = """
CREATE TABLE IF NOT EXISTS scores (
    file_path       VARCHAR NOT NULL,
    code_text       VARCHAR NOT NULL,
    score           DOUBLE NOT NULL,
    metrics         VARCHAR,
    analyzed_file   VARCHAR,
    scored_at       TIMESTAMP DEFAULT now(),
    PRIMARY KEY (file_path, code_text)
);

CREATE INDEX IF NOT EXISTS idx_scores_file ON scores(file_path);
"""


def _to_result(score: float, metrics: str | None, analyzed_file: str | None) -> ScoreResult:
    return ScoreResult(
        score=score,
        metrics=json.loads(metrics) if metrics is not None else None,
        analyzed_file=analyzed_file or "",
    )


class ScoreStore:
    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        self._con = duckdb.connect(db_path)
        for stmt in _DDL.strip().split(";"):
            stmt = stmt.strip()
            if stmt:
                self._con.execute(stmt)
        log.debug("ScoreStore opened: %s", db_path)

    def close(self) -> None:
        self._con.close()

    def load(self, file_path: str) -> dict[str, ScoreResult]:
        with self._lock:
            rows = self._con.execute(
                "SELECT code_text, score, metrics, analyzed_file FROM scores WHERE file_path = ?",
                [file_path],
            ).fetchall()
        return {code: _to_result(score, metrics, af) for code, score, metrics, af in rows}

    def save(self, file_path: str, entries: Mapping[str, ScoreResult]) -> None:
        """Replace every stored score of file_path with entries."""
        rows = [
            (
                file_path,
                code,
                r.score,
                json.dumps(dict(r.metrics)) if r.metrics is not None else None,
                r.analyzed_file,
            )
            for code, r in entries.items()
        ]
        with self._lock:
            self._con.execute("BEGIN TRANSACTION")
            try:
                self._con.execute("DELETE FROM scores WHERE file_path = ?", [file_path])
                if rows:
                    self._con.executemany(
                        "INSERT INTO scores (file_path, code_text, score, metrics, analyzed_file) "
                        "VALUES (?, ?, ?, ?, ?)",
                        rows,
                    )
                self._con.execute("COMMIT")
            except duckdb.Error:
                self._con.execute("ROLLBACK")
                raise

    def file_paths(self) -> list[str]:
        with self._lock:
            return [r[0] for r in self._con.execute(
                "SELECT DISTINCT file_path FROM scores ORDER BY file_path"
            ).fetchall()]

    def load_into(self, cache: ScoreCache, file_path: str) -> None:
        entries = self.load(file_path)
        if entries:
            cache.replace(file_path, entries)

    def save_from(self, cache: ScoreCache, file_path: str) -> None:
        if file_path in cache:
            self.save(file_path, cache.get(file_path))

    def stats(self) -> dict:
        with self._lock:
            row = self._con.execute(
                "SELECT COUNT(*), COUNT(DISTINCT file_path), AVG(score) FROM scores"
            ).fetchone()
        scores, files, mean = row if row else (0, 0, None)
        return {"scores": scores, "files": files, "mean_score": mean}
