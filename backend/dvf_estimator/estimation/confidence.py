"""Confidence score (0-100) and star rating (0-5)"""

from __future__ import annotations

import math

from dvf_estimator.estimation.rules import ConfidenceRules
from dvf_estimator.tools.formatting import round_half_up


def count_score(count: int, rules: ConfidenceRules) -> float:
    return min(count / rules.count_target * rules.count_points, rules.count_points)


def proximity_score(avg_distance_m: float, radius_km: float, rules: ConfidenceRules) -> float:
    # full points at the center, zero at half the radius
    if radius_km <= 0:
        return 0.0
    return max(0.0, rules.proximity_points - (avg_distance_m / (radius_km * 500)) * rules.proximity_points)


def recency_score(avg_months_ago: float, rules: ConfidenceRules) -> float:
    return max(0.0, rules.recency_points - (avg_months_ago / rules.recency_horizon_months) * rules.recency_points)


def dispersion_score(prices_per_sqm: list[float], rules: ConfidenceRules) -> float:
    """Mean absolute deviation from the (positional) median, relative to it."""
    if not prices_per_sqm:
        return 0.0
    ordered = sorted(prices_per_sqm)
    reference = ordered[len(ordered) // 2]
    if reference <= 0:
        return 0.0
    dispersion = sum(abs(p - reference) for p in ordered) / len(ordered) / reference
    return max(0.0, rules.dispersion_points - dispersion * rules.dispersion_scale)


def confidence_score(
    distances_m: list[float],
    months_ago: list[float],
    prices_per_sqm: list[float],
    radius_km: float,
    rules: ConfidenceRules | None = None,
) -> int:
    """Sum of the count, proximity, recency and dispersion sub-scores, clamped to [0, 100]."""
    rules = rules or ConfidenceRules()
    count = len(prices_per_sqm)
    if count == 0:
        return 0

    score = (
        count_score(count, rules)
        + proximity_score(sum(distances_m) / len(distances_m), radius_km, rules)
        + recency_score(sum(months_ago) / len(months_ago), rules)
        + dispersion_score(prices_per_sqm, rules)
    )
    return max(0, min(100, round_half_up(score)))


def confidence_stars(score: int) -> int:
    return max(0, min(5, math.ceil(score / 20)))
