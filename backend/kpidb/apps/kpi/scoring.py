"""
KPI scoring.

Seven sub-metrics are mapped through fixed threshold bands (not linear
weights) and summed into an overall score out of 100. Everything in this
module is pure so that reprocessing a record always reproduces the same
numbers.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping


class Rating(str, enum.Enum):
    OUTSTANDING = "Outstanding"
    EXCELLENT = "Excellent"
    SATISFACTORY = "Satisfactory"
    NEED_IMPROVEMENT = "Need Improvement"
    UNSATISFACTORY = "Unsatisfactory"


METRICS = (
    "tat",
    "major_negativity",
    "quality",
    "neighbor_check",
    "negativity",
    "app_usage",
    "insufficiency",
)

# Maximum points per metric; they add up to 100.
METRIC_CAPS: Dict[str, int] = {
    "tat": 20,
    "major_negativity": 20,
    "quality": 20,
    "neighbor_check": 10,
    "negativity": 10,
    "app_usage": 10,
    "insufficiency": 10,
}


def score_tat(pct: float) -> int:
    if pct >= 95:
        return 20
    if pct >= 90:
        return 10
    if pct >= 85:
        return 5
    return 0


def score_major_negativity(pct: float) -> int:
    if pct >= 2.5:
        return 0
    if pct >= 2.0:
        return 5
    if pct >= 1.5:
        return 15
    return 20


def score_quality(pct: float) -> int:
    if pct == 0:
        return 20
    if pct <= 0.25:
        return 15
    if pct <= 0.5:
        return 10
    return 0


def score_neighbor_check(pct: float) -> int:
    if pct >= 90:
        return 10
    if pct >= 85:
        return 5
    if pct >= 80:
        return 2
    return 0


def score_negativity(pct: float) -> int:
    if pct >= 25:
        return 0
    if pct >= 20:
        return 2
    if pct >= 15:
        return 5
    return 10


def score_app_usage(pct: float) -> int:
    if pct >= 90:
        return 10
    if pct >= 85:
        return 5
    if pct >= 80:
        return 2
    return 0


def score_insufficiency(pct: float) -> int:
    if pct < 1:
        return 10
    if pct <= 1.5:
        return 5
    if pct <= 2:
        return 2
    return 0


BANDS: Dict[str, Callable[[float], int]] = {
    "tat": score_tat,
    "major_negativity": score_major_negativity,
    "quality": score_quality,
    "neighbor_check": score_neighbor_check,
    "negativity": score_negativity,
    "app_usage": score_app_usage,
    "insufficiency": score_insufficiency,
}


@dataclass(frozen=True)
class ScoreBreakdown:
    scores: Dict[str, int]
    overall_score: int
    rating: Rating


def calculate_scores(percentages: Mapping[str, float]) -> Dict[str, int]:
    """
    Return the derived score of every metric plus ``overall_score``.

    Raises KeyError when a metric is missing from ``percentages``.
    """
    scores = {name: BANDS[name](float(percentages[name])) for name in METRICS}
    scores["overall_score"] = int(round(sum(scores[name] for name in METRICS)))
    return scores


def classify_rating(overall_score: float) -> Rating:
    if overall_score >= 85:
        return Rating.OUTSTANDING
    if overall_score >= 70:
        return Rating.EXCELLENT
    if overall_score >= 50:
        return Rating.SATISFACTORY
    if overall_score >= 40:
        return Rating.NEED_IMPROVEMENT
    return Rating.UNSATISFACTORY


def score_breakdown(percentages: Mapping[str, float]) -> ScoreBreakdown:
    scores = calculate_scores(percentages)
    overall = scores.pop("overall_score")
    return ScoreBreakdown(scores=scores, overall_score=overall, rating=classify_rating(overall))


# Derived-score thresholds below which a metric is called out to the user.
IMPROVEMENT_AREAS = (
    ("tat", 10, "Turn Around Time (TAT) below target"),
    ("major_negativity", 10, "High Major Negativity rate"),
    ("quality", 10, "Quality concerns"),
    ("neighbor_check", 5, "Insufficient neighbor checks"),
    ("negativity", 5, "High general negativity rate"),
    ("app_usage", 5, "Low application usage"),
    ("insufficiency", 5, "High insufficiency rate"),
)


def improvement_areas(scores: Mapping[str, int]) -> List[str]:
    return [label for name, below, label in IMPROVEMENT_AREAS if scores[name] < below]
