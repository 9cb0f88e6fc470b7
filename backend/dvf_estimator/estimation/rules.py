"""Tunable numeric rules of the estimation engine."""

from __future__ import annotations

from dataclasses import dataclass, field

from dvf_estimator.schemas.property import Condition, EnergyGrade


@dataclass(frozen=True)
class RadiusSchedule:
    """Search radii tried in order until enough comparables are found."""

    initial_km: float = 1.0
    step_km: float = 1.0
    max_km: float = 10.0
    min_comparables: int = 3

    def radii(self) -> list[float]:
        radii: list[float] = []
        radius = self.initial_km
        while radius <= self.max_km + 1e-9:
            radii.append(round(radius, 3))
            radius += self.step_km
        return radii


@dataclass(frozen=True)
class RetrievalRules:
    surface_tolerance: float = 0.3  # ±30% of the target surface
    max_age_years: int = 3
    max_price: float = 10_000_000
    max_results: int = 200


@dataclass(frozen=True)
class WeightingFloors:
    distance: float = 0.1
    recency: float = 0.3
    surface: float = 0.5
    recency_horizon_months: float = 36


@dataclass(frozen=True)
class AdjustmentRates:
    energy: dict[EnergyGrade, float] = field(
        default_factory=lambda: {
            EnergyGrade.A: 0.10,
            EnergyGrade.B: 0.05,
            EnergyGrade.C: 0.0,
            EnergyGrade.D: 0.0,
            EnergyGrade.E: -0.05,
            EnergyGrade.F: -0.10,
            EnergyGrade.G: -0.15,
            EnergyGrade.NC: 0.0,
        }
    )
    ground_floor: int = -5_000
    ground_floor_with_elevator: int = -3_000
    high_floor_threshold: int = 4
    per_floor_with_elevator: int = 2_000
    per_floor_with_elevator_cap: int = 10_000
    per_floor_without_elevator: int = 3_000
    per_floor_without_elevator_cap: int = 15_000
    condition: dict[Condition, int] = field(
        default_factory=lambda: {
            Condition.NEW: 20_000,
            Condition.RENOVATED: 10_000,
            Condition.GOOD: 0,
            Condition.TO_RENOVATE: -15_000,
        }
    )
    land_per_sqm: int = 50
    land_cap: int = 50_000
    parking_per_space: int = 15_000
    cellar: int = 5_000
    balcony_per_sqm: int = 500
    balcony_cap: int = 15_000
    pool: int = 25_000
    low_factor: float = 0.8  # share of the adjustments applied to the low price
    high_factor: float = 1.2


@dataclass(frozen=True)
class ConfidenceRules:
    count_points: float = 40
    count_target: int = 20
    proximity_points: float = 30
    recency_points: float = 15
    recency_horizon_months: float = 6
    dispersion_points: float = 15
    dispersion_scale: float = 150


@dataclass(frozen=True)
class EstimationRules:
    radius: RadiusSchedule = field(default_factory=RadiusSchedule)
    retrieval: RetrievalRules = field(default_factory=RetrievalRules)
    weighting: WeightingFloors = field(default_factory=WeightingFloors)
    adjustments: AdjustmentRates = field(default_factory=AdjustmentRates)
    confidence: ConfidenceRules = field(default_factory=ConfidenceRules)
    outlier_max_deviation: float = 0.3
    max_displayed_comparables: int = 23
    market_radius_km: float = 5.0
