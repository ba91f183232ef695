"""Tests for the DuckDB score store."""

import pytest

from readscope.cache import ScoreCache
from readscope.models import ScoreResult
from readscope.store import ScoreStore


@pytest.fixture
def store(tmp_path):
    s = ScoreStore(str(tmp_path / "scores.duckdb"))
    yield s
    s.close()


def test_save_and_load(store):
    entries = {
        "int f() {}": ScoreResult(0.5, {"BW Avg numbers": 0.25}, "/tmp/snippet1.java"),
        "int g() {}": ScoreResult(0.75),
    }
    store.save("A.java", entries)
    loaded = store.load("A.java")

    assert set(loaded) == set(entries)
    assert loaded["int f() {}"].score == 0.5
    assert loaded["int f() {}"].metrics == {"BW Avg numbers": 0.25}
    assert loaded["int f() {}"].analyzed_file == "/tmp/snippet1.java"
    assert loaded["int g() {}"].metrics is None


def test_save_replaces_previous_entries(store):
    store.save("A.java", {"old": ScoreResult(0.1)})
    store.save("A.java", {"new": ScoreResult(0.2)})

    assert list(store.load("A.java")) == ["new"]


def test_files_are_independent(store):
    store.save("A.java", {"x": ScoreResult(0.1)})
    store.save("B.java", {"x": ScoreResult(0.9)})

    assert store.load("A.java")["x"].score == 0.1
    assert store.file_paths() == ["A.java", "B.java"]
    assert store.stats()["files"] == 2
    assert store.stats()["scores"] == 2


def test_round_trip_through_cache(store):
    cache = ScoreCache()
    cache.replace("A.java", {"x": ScoreResult(0.3)})
    store.save_from(cache, "A.java")
    store.save_from(cache, "unknown.java")

    fresh = ScoreCache()
    store.load_into(fresh, "A.java")
    store.load_into(fresh, "unknown.java")

    assert fresh.get("A.java")["x"].score == 0.3
    assert "unknown.java" not in fresh


def test_unknown_file_loads_empty(store):
    assert store.load("nothing.java") == {}
