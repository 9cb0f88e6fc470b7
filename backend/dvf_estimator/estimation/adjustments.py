"""Feature adjustments applied on top of the comparable-sales price"""

from __future__ import annotations

from dvf_estimator.estimation.rules import AdjustmentRates
from dvf_estimator.schemas.property import Property, PropertyType

DEFAULT_RATES = AdjustmentRates()


def energy_adjustment_per_sqm(property_: Property, base_price_per_sqm: float, rates: AdjustmentRates = DEFAULT_RATES) -> float:
    """DPE adjustment to the price per m² (A +10% … G -15%, unknown 0)."""
    if property_.energy_grade is None:
        return 0.0
    return base_price_per_sqm * rates.energy.get(property_.energy_grade, 0.0)


def floor_adjustment(property_: Property, rates: AdjustmentRates = DEFAULT_RATES) -> int:
    """Ground floor discount and high-floor premium, apartments only.

    - ground floor: -5000 (-3000 with elevator)
    - above the 4th floor: +2000/floor capped at 10000 with elevator,
      +3000/floor capped at 15000 without
    """
    if property_.property_type is not PropertyType.APARTMENT or property_.floor is None:
        return 0

    if property_.floor == 0:
        return rates.ground_floor_with_elevator if property_.has_elevator else rates.ground_floor

    extra_floors = property_.floor - rates.high_floor_threshold
    if extra_floors <= 0:
        return 0
    if property_.has_elevator:
        return min(extra_floors * rates.per_floor_with_elevator, rates.per_floor_with_elevator_cap)
    return min(extra_floors * rates.per_floor_without_elevator, rates.per_floor_without_elevator_cap)


def condition_adjustment(property_: Property, rates: AdjustmentRates = DEFAULT_RATES) -> int:
    if property_.condition is None:
        return 0
    return rates.condition.get(property_.condition, 0)


def land_adjustment(property_: Property, rates: AdjustmentRates = DEFAULT_RATES) -> int:
    if property_.property_type is not PropertyType.HOUSE or not property_.land_area:
        return 0
    return int(min(property_.land_area * rates.land_per_sqm, rates.land_cap))


def parking_adjustment(property_: Property, rates: AdjustmentRates = DEFAULT_RATES) -> int:
    return (property_.parking_spaces or 0) * rates.parking_per_space


def cellar_adjustment(property_: Property, rates: AdjustmentRates = DEFAULT_RATES) -> int:
    return rates.cellar if property_.has_cellar else 0


def balcony_adjustment(property_: Property, rates: AdjustmentRates = DEFAULT_RATES) -> int:
    if not property_.balcony_area:
        return 0
    return int(min(property_.balcony_area * rates.balcony_per_sqm, rates.balcony_cap))


def pool_adjustment(property_: Property, rates: AdjustmentRates = DEFAULT_RATES) -> int:
    if property_.property_type is not PropertyType.HOUSE or not property_.has_pool:
        return 0
    return rates.pool
