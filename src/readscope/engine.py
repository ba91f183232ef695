"""
External readability engine.

The default engine shells out to the Scalabrino readability model
(`java -jar RSE.jar <file>`) and, for metrics, to its ExtractMetrics entry
point on the same jar. Every call blocks until the process exits.
"""

import logging
import os
import re
import subprocess
import tempfile
from typing import Protocol

from .errors import MetricsFailure, ScoringFailure
from .models import RatingConfig, ScopeKind, ScoreResult

log = logging.getLogger(__name__)

_SKIPPED_PREFIXES = ("[INFO]", "file")


class ScoringEngine(Protocol):
    def score_code(self, code: str, kind: ScopeKind) -> ScoreResult:
        """Score one code unit without metrics. ``kind`` FILE marks a whole compilation unit."""
        ...

    def score_with_metrics(self, code: str, kind: ScopeKind) -> ScoreResult:
        """Score one code unit and attach its metric vector."""
        ...


def wrap_snippet(code: str, kind: ScopeKind) -> str:
    """Wrap a snippet so the engine sees a compilable class.

    Files go through unchanged, methods get a synthetic class around them,
    anything smaller gets a synthetic method inside a synthetic class.
    """
    if kind is ScopeKind.FILE:
        return code
    if kind is not ScopeKind.METHOD:
        code = "    public static void main(String[] args) {\n" + code + "\n    }"
    return "public class Main {\n" + code + "\n}"


def _result_lines(stdout: str) -> list[str]:
    return [
        line for line in stdout.splitlines()
        if line.strip() and not line.startswith(_SKIPPED_PREFIXES)
    ]


def parse_scores(stdout: str, path: str | None = None) -> list[ScoreResult]:
    """Parse `<file> <score>` lines printed by the engine."""
    results: list[ScoreResult] = []
    for line in _result_lines(stdout):
        parts = re.split(r"[\t ]+", line.strip())
        try:
            if len(parts) < 2:
                raise ValueError(f"expected '<file> <score>', got {line!r}")
            score = float(parts[-1])
        except ValueError as e:
            raise ScoringFailure("Unparsable engine output", path, e) from e
        if not 0.0 <= score <= 1.0:
            raise ScoringFailure(f"Score {score} outside [0, 1]", path)
        results.append(ScoreResult(score=score, analyzed_file=" ".join(parts[:-1])))
    if not results:
        raise ScoringFailure("Engine printed no score", path)
    return results


def parse_metrics(stdout: str, path: str | None = None) -> dict[str, float]:
    """Parse `<metric name>: <value>` lines printed by the metrics extractor."""
    metrics: dict[str, float] = {}
    for line in _result_lines(stdout):
        name, sep, value = line.rpartition(": ")
        try:
            if not sep:
                raise ValueError(f"expected '<name>: <value>', got {line!r}")
            metrics[name.strip()] = float(value)
        except ValueError as e:
            raise MetricsFailure("Unparsable metrics output", path, e) from e
    if not metrics:
        raise MetricsFailure("Metrics extractor printed no metrics", path)
    return metrics


class RseScoringEngine:
    """Runs the readability model jar in a subprocess per request."""

    def __init__(self, config: RatingConfig):
        self.config = config
        self._temp_dir = config.temp_dir

    @property
    def temp_dir(self) -> str:
        if self._temp_dir is None:
            try:
                self._temp_dir = tempfile.mkdtemp(prefix="readscope_")
            except OSError as e:
                raise ScoringFailure("Cannot create snippet directory", None, e) from e
        return self._temp_dir

    def _write_snippet(self, code: str) -> str:
        directory = self.temp_dir
        try:
            fd, path = tempfile.mkstemp(prefix="snippet", suffix=".java", dir=directory)
        except OSError as e:
            log.warning("Cannot create snippet in %s: %s", directory, e)
            raise ScoringFailure("Cannot create snippet file", directory, e) from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(code)
        except OSError as e:
            _remove(path)
            raise ScoringFailure("Cannot write snippet file", path, e) from e
        return path

    def _run(self, cmd: list[str], path: str, error_cls: type) -> str:
        try:
            result = subprocess.run(
                cmd,
                cwd=self.config.engine_dir,
                capture_output=True,
                text=True,
                timeout=self.config.timeout,
            )
        except FileNotFoundError as e:
            log.error("%s not found; is a JRE installed?", cmd[0])
            raise error_cls(f"Cannot start {cmd[0]}", path, e) from e
        except subprocess.TimeoutExpired as e:
            log.warning("Engine timed out after %.0fs on %s", self.config.timeout, path)
            raise error_cls("Engine timed out", path, e) from e
        except OSError as e:
            raise error_cls(f"Failed to execute {cmd[0]}", path, e) from e

        if result.returncode != 0:
            log.warning(
                "Engine failed (rc=%d): %s",
                result.returncode, result.stderr[:200],
            )
            raise error_cls(
                f"Engine terminated with exit code {result.returncode}: {result.stderr.strip()[:200]}",
                path,
            )
        return result.stdout

    def _score_file(self, path: str) -> ScoreResult:
        stdout = self._run(
            [self.config.java, "-jar", self.config.jar, path], path, ScoringFailure,
        )
        return parse_scores(stdout, path)[0]

    def _metrics_for_file(self, path: str) -> dict[str, float]:
        stdout = self._run(
            [self.config.java, "-cp", self.config.jar, self.config.metrics_class, path],
            path, MetricsFailure,
        )
        return parse_metrics(stdout, path)

    def score_code(self, code: str, kind: ScopeKind) -> ScoreResult:
        path = self._write_snippet(wrap_snippet(code, kind))
        try:
            return self._score_file(path)
        finally:
            _remove(path)

    def score_with_metrics(self, code: str, kind: ScopeKind) -> ScoreResult:
        path = self._write_snippet(wrap_snippet(code, kind))
        try:
            result = self._score_file(path)
            return result.with_metrics(self._metrics_for_file(path))
        finally:
            _remove(path)


def _remove(path: str) -> None:
    try:
        os.remove(path)
    except OSError as e:
        log.debug("Could not remove snippet %s: %s", path, e)
