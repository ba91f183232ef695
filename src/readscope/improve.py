"""
Improvement hints for a rated scope.

The readability model is a logistic regression over code metrics that
predicts *unreadability*. For every metric we substitute the mean value of
well-readable code, re-run the regression and keep the substitutions that
raise the score, ranked by the score they reach.
"""

import json
import logging
import math
from pathlib import Path
from typing import Iterator, Mapping

from .errors import MissingMetricsError
from .models import Improvement, ScoreResult

log = logging.getLogger(__name__)

COEFFICIENTS: dict[str, float] = {
    "New Commented words MAX": 0.1106,
    "New Synonym commented words MAX": -0.0625,
    "New Text Coherence MAX": 0.5508,
    "BW Avg comparisons": 1.1061,
    "BW Avg numbers": 0.7925,
    "BW Avg parenthesis": 0.129,
    "BW Max line length": 0.0106,
    "BW Max number of identifiers": 0.054,
    "BW Max numbers": -0.0941,
    "Posnett volume": 0.0023,
    "Dorn DFT Commas": -0.0316,
    "Dorn DFT Comparisons": -0.0014,
    "Dorn DFT Keywords": 0.0291,
    "Dorn DFT LineLengths": -0.032,
    "Dorn DFT Periods": -0.0332,
    "Dorn DFT Spaces": -0.0344,
    "Dorn Visual Y Comments": -0.0475,
    "Dorn Visual Y Identifiers": 0.1542,
    "Dorn Visual Y Keywords": -0.065,
    "Dorn Visual Y Numbers": 0.0092,
    "Dorn Areas Comments": -0.1018,
    "Dorn Areas Identifiers": 3.151,
    "Dorn Areas Keywords/Identifiers": -1.4795,
    "Dorn align blocks": -0.0092,
}

# Metric means over code rated as well readable.
MEANS: dict[str, float] = {
    "New Commented words MAX": 1.8666666666666667,
    "New Synonym commented words MAX": 12.08,
    "New Text Coherence MAX": 0.3471257128631813,
    "BW Avg comparisons": 0.0486999320282494,
    "BW Avg numbers": 0.16816856124271212,
    "BW Avg parenthesis": 0.8511882778236841,
    "BW Max line length": 69.48,
    "BW Max number of identifiers": 5.906666666666666,
    "BW Max numbers": 1.5066666666666666,
    "Posnett volume": 476.6499244890177,
    "Dorn DFT Commas": 10.973333333333333,
    "Dorn DFT Comparisons": 9.306666666666667,
    "Dorn DFT Keywords": 16.36,
    "Dorn DFT LineLengths": 18.933333333333334,
    "Dorn DFT Periods": 16.613333333333333,
    "Dorn DFT Spaces": 14.213333333333333,
    "Dorn Areas Comments": 0.21825237213856463,
    "Dorn Areas Identifiers": 0.37966093761625824,
    "Dorn Areas Keywords/Identifiers": 0.23394542257613102,
    "Dorn align blocks": 32.44,
}

INTERCEPT = -3.8428


def _sigmoid(x: float) -> float:
    # split keeps math.exp from overflowing for large |x|
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


def regress(
    metrics: Mapping[str, float],
    coefficients: Mapping[str, float] = COEFFICIENTS,
    intercept: float = INTERCEPT,
) -> float:
    """Readability predicted from metrics: 1 - sigmoid(w·m + b) over shared keys."""
    linear = intercept
    for key, value in metrics.items():
        if key in coefficients:
            linear += coefficients[key] * value
    return 1.0 - _sigmoid(linear)


def rank_improvements(
    result: ScoreResult,
    coefficients: Mapping[str, float] = COEFFICIENTS,
    means: Mapping[str, float] = MEANS,
    intercept: float = INTERCEPT,
) -> Iterator[Improvement]:
    """
    Rank metrics by the score reached when each alone is set to its mean.

    Only substitutions that beat the unmodified score are returned, best
    first; equal scores keep the order of ``means``.
    """
    if result.metrics is None:
        raise MissingMetricsError("Improvement ranking needs a result with metrics")

    metrics = dict(result.metrics)
    baseline = regress(metrics, coefficients, intercept)

    candidates: list[tuple[str, float | None, float, float]] = []
    for key, mean in means.items():
        candidate = dict(metrics)
        candidate[key] = mean
        improved = regress(candidate, coefficients, intercept)
        if improved > baseline:
            candidates.append((key, metrics.get(key), mean, improved))

    candidates.sort(key=lambda c: c[3], reverse=True)
    ranking = [
        Improvement(
            metric=key,
            actual_value=actual,
            improved_value=mean,
            actual_score=baseline,
            improved_score=improved,
            rank=i,
        )
        for i, (key, actual, mean, improved) in enumerate(candidates, 1)
    ]
    log.debug("%d of %d metrics would improve a score of %.3f", len(ranking), len(means), baseline)
    return iter(ranking)


def load_ranking_tables(path: str) -> tuple[dict[str, float], dict[str, float], float]:
    """
    Load (coefficients, means, intercept) from a JSON file of the form
    {"coefficients": {...}, "means": {...}, "intercept": -3.8}.
    Missing sections fall back to the built-in tables.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    coefficients = {k: float(v) for k, v in data.get("coefficients", COEFFICIENTS).items()}
    means = {k: float(v) for k, v in data.get("means", MEANS).items()}
    intercept = float(data.get("intercept", INTERCEPT))
    return coefficients, means, intercept
