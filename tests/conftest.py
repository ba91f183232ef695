from __future__ import annotations

import threading
import time

import pytest

from readscope.errors import MetricsFailure, ScoringFailure
from readscope.models import ScopeKind, ScoreResult

# Line numbers (0-indexed) are referenced by the tests; keep the layout stable.
SAMPLE = """\
package demo;

/**
 * A small calculator.
 */
public class Calc {

    /**
     * Adds two numbers.
     */
    int add(int a, int b) {
        return a + b;
    }

    int total(int[] values) {
        int sum = 0;
        for (int i = 0; i < values.length; i++) {
            if (values[i] > 0
                    && values[i] < 100) {
                sum += values[i];
            }
        }
        return sum;
    }
}
"""

DUPLICATES = """\
class A {
    int add(int a,int b){return a+b;}
}

class B {
    int add(int a,int b){return a+b;}
}
"""

NO_METHODS = """\
class Empty {
    int field = 3;
}
"""


def fake_score(code: str) -> float:
    return (len(code) % 97) / 97


class FakeEngine:
    """Scores by code length and records every call."""

    def __init__(self, fail_on: str | None = None, metrics_fail_on: str | None = None,
                 delays: dict[str, float] | None = None):
        self.calls: list[tuple[str, ScopeKind]] = []
        self.plain_calls: list[tuple[str, ScopeKind]] = []
        self.fail_on = fail_on
        self.metrics_fail_on = metrics_fail_on
        self.delays = delays or {}
        self._lock = threading.Lock()

    def _delay(self, code: str) -> None:
        for needle, seconds in self.delays.items():
            if needle in code:
                time.sleep(seconds)

    def score_code(self, code: str, kind: ScopeKind) -> ScoreResult:
        with self._lock:
            self.plain_calls.append((code, kind))
        return ScoreResult(score=fake_score(code))

    def score_with_metrics(self, code: str, kind: ScopeKind) -> ScoreResult:
        with self._lock:
            self.calls.append((code, kind))
        self._delay(code)
        if self.fail_on and self.fail_on in code:
            raise ScoringFailure("engine exploded", "/tmp/snippet.java")
        if self.metrics_fail_on and self.metrics_fail_on in code:
            raise MetricsFailure("metrics exploded", "/tmp/snippet.java")
        return ScoreResult(score=fake_score(code), metrics={"BW Avg numbers": 0.5, "length": float(len(code))})


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def sample_file(tmp_path):
    path = tmp_path / "Calc.java"
    path.write_text(SAMPLE, encoding="utf-8")
    return path
