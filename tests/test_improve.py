"""Tests for improvement ranking."""

import json
import math

import pytest

from readscope.errors import MissingMetricsError
from readscope.improve import COEFFICIENTS, INTERCEPT, MEANS, load_ranking_tables, rank_improvements, regress
from readscope.models import ScoreResult


def _sig(x):
    return 1 / (1 + math.exp(-x))


def test_regress_inverts_sigmoid_over_shared_keys():
    score = regress({"a": 1.0, "b": 2.0, "ignored": 100.0}, {"a": 0.5, "b": -1.0}, 0.25)

    assert score == pytest.approx(1 - _sig(0.5 - 2.0 + 0.25))


def test_regress_handles_extreme_inputs():
    assert regress({"a": 1e6}, {"a": 1.0}, 0.0) == pytest.approx(0.0)
    assert regress({"a": -1e6}, {"a": 1.0}, 0.0) == pytest.approx(1.0)


def test_ranking_by_improved_score():
    result = ScoreResult(0.2, {"a": 1.0, "b": 1.0})
    ranking = list(rank_improvements(
        result,
        coefficients={"a": 1.0, "b": 2.0},
        means={"a": 0.0, "b": 0.0, "c": 5.0},
        intercept=0.0,
    ))

    assert [i.metric for i in ranking] == ["b", "a"]
    assert [i.rank for i in ranking] == [1, 2]
    b, a = ranking
    assert b.actual_value == 1.0
    assert b.improved_value == 0.0
    assert b.actual_score == pytest.approx(1 - _sig(3.0))
    assert b.improved_score == pytest.approx(1 - _sig(1.0))
    assert a.improved_score == pytest.approx(1 - _sig(2.0))
    assert b.score_gain == pytest.approx(b.improved_score - b.actual_score)


def test_metric_missing_from_result_is_substituted():
    ranking = list(rank_improvements(
        ScoreResult(0.5, {"a": 1.0}),
        coefficients={"a": 1.0, "b": 1.0},
        means={"b": -2.0},
        intercept=0.0,
    ))

    assert len(ranking) == 1
    assert ranking[0].actual_value is None
    assert ranking[0].improved_score == pytest.approx(1 - _sig(-1.0))


def test_ties_keep_table_order():
    ranking = list(rank_improvements(
        ScoreResult(0.5, {"x": 1.0, "y": 1.0}),
        coefficients={"x": 1.0, "y": 1.0},
        means={"y": 0.0, "x": 0.0},
        intercept=0.0,
    ))

    assert [i.metric for i in ranking] == ["y", "x"]


def test_default_tables_yield_non_increasing_scores():
    metrics = {k: v * 3 for k, v in MEANS.items()}
    ranking = list(rank_improvements(ScoreResult(0.1, metrics)))

    assert ranking
    scores = [i.improved_score for i in ranking]
    assert scores == sorted(scores, reverse=True)
    baseline = regress(metrics, COEFFICIENTS, INTERCEPT)
    assert all(i.improved_score > baseline for i in ranking)
    assert all(i.actual_score == baseline for i in ranking)


def test_code_at_the_means_has_nothing_to_improve():
    assert list(rank_improvements(ScoreResult(0.9, dict(MEANS)))) == []


def test_ranking_is_a_single_pass_iterator():
    it = rank_improvements(
        ScoreResult(0.5, {"a": 1.0}), coefficients={"a": 1.0}, means={"a": 0.0}, intercept=0.0,
    )

    assert next(it).rank == 1
    with pytest.raises(StopIteration):
        next(it)


def test_missing_metrics_is_a_contract_error():
    with pytest.raises(MissingMetricsError):
        rank_improvements(ScoreResult(0.5))
    with pytest.raises(ValueError):
        rank_improvements(ScoreResult(0.5))


def test_load_ranking_tables(tmp_path):
    path = tmp_path / "tables.json"
    path.write_text(json.dumps({"coefficients": {"a": 1}, "intercept": -1}), encoding="utf-8")

    coefficients, means, intercept = load_ranking_tables(str(path))

    assert coefficients == {"a": 1.0}
    assert means == MEANS
    assert intercept == -1.0
