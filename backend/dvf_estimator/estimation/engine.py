"""Estimation Engine - comparable-sales valuation"""

from __future__ import annotations

import logging
from datetime import date

from dvf_estimator.errors import InsufficientComparables
from dvf_estimator.estimation.adjustments import (
    balcony_adjustment,
    cellar_adjustment,
    condition_adjustment,
    energy_adjustment_per_sqm,
    floor_adjustment,
    land_adjustment,
    parking_adjustment,
    pool_adjustment,
)
from dvf_estimator.estimation.confidence import confidence_score, confidence_stars
from dvf_estimator.estimation.market import MarketStatisticsSummarizer
from dvf_estimator.estimation.outliers import filter_outliers
from dvf_estimator.estimation.retriever import ComparableSalesRetriever
from dvf_estimator.estimation.rules import AdjustmentRates, EstimationRules, WeightingFloors
from dvf_estimator.schemas.estimation import Adjustments, EstimationResult, PriceRange
from dvf_estimator.schemas.property import GeoPoint, Property
from dvf_estimator.schemas.sale import ComparableSale, WeightedSample
from dvf_estimator.tools.formatting import round_half_up

logger = logging.getLogger(__name__)

DAYS_PER_MONTH = 30


# ---------------------------------------------------------------------------
# 1. Weighting
# ---------------------------------------------------------------------------


def months_since(sale_date: date, today: date) -> float:
    return (today - sale_date).days / DAYS_PER_MONTH


def weigh_sale(
    sale: ComparableSale,
    property_: Property,
    radius_km: float,
    today: date,
    floors: WeightingFloors,
) -> WeightedSample:
    """Distance × recency × surface-similarity factors, each floored."""
    distance_factor = max(floors.distance, 1 - sale.distance_m / (radius_km * 1000))
    recency_factor = max(floors.recency, 1 - months_since(sale.sale_date, today) / floors.recency_horizon_months)
    surface_gap = abs(sale.surface - property_.surface) / property_.surface
    surface_factor = max(floors.surface, 1 - surface_gap)
    return WeightedSample(
        sale=sale,
        distance_factor=min(distance_factor, 1.0),
        recency_factor=min(recency_factor, 1.0),
        surface_factor=surface_factor,
    )


# ---------------------------------------------------------------------------
# 2. Price-per-m² distribution
# ---------------------------------------------------------------------------


def weighted_median(samples: list[WeightedSample]) -> float:
    """Price per m² where the cumulative weight first reaches half the total.

    The sample at the crossing point wins ties. Falls back to the positional
    median when the weights are degenerate.
    """
    if not samples:
        raise ValueError("weighted median of an empty sample")
    ordered = sorted(samples, key=lambda s: s.price_per_sqm)
    total = sum(s.weight for s in ordered)
    if total <= 0:
        return ordered[len(ordered) // 2].price_per_sqm

    cumulative = 0.0
    for sample in ordered:
        cumulative += sample.weight
        if cumulative >= total / 2:
            return sample.price_per_sqm
    return ordered[-1].price_per_sqm


def percentile_band(prices_per_sqm: list[float]) -> tuple[float, float]:
    """25th and 75th percentile positions (by count) of the sorted prices."""
    ordered = sorted(prices_per_sqm)
    n = len(ordered)
    return ordered[int(n * 0.25)], ordered[int(n * 0.75)]


# ---------------------------------------------------------------------------
# 3. Adjustments and price assembly
# ---------------------------------------------------------------------------


def compute_adjustments(property_: Property, energy_per_sqm: float, rates: AdjustmentRates) -> Adjustments:
    return Adjustments(
        energy=round_half_up(energy_per_sqm * property_.surface),
        floor=floor_adjustment(property_, rates),
        parking=parking_adjustment(property_, rates),
        cellar=cellar_adjustment(property_, rates),
        balcony=balcony_adjustment(property_, rates),
        pool=pool_adjustment(property_, rates),
        land=land_adjustment(property_, rates),
        condition=condition_adjustment(property_, rates),
    )


def ordered_range(low: int, median: int, high: int) -> PriceRange:
    """Clamp so that low <= median <= high."""
    return PriceRange(low=min(low, median), median=median, high=max(high, median))


def assemble_prices(
    surface: float,
    median_per_sqm: float,
    low_per_sqm: float,
    high_per_sqm: float,
    energy_per_sqm: float,
    extras: int,
    rates: AdjustmentRates,
) -> tuple[PriceRange, PriceRange]:
    """(estimated price, price per m²), prices rounded to the nearest 1000 €."""
    adjusted_per_sqm = median_per_sqm + energy_per_sqm
    price = ordered_range(
        low=round_half_up(low_per_sqm * surface + extras * rates.low_factor, 1000),
        median=round_half_up(adjusted_per_sqm * surface + extras, 1000),
        high=round_half_up(high_per_sqm * surface + extras * rates.high_factor, 1000),
    )
    per_sqm = ordered_range(
        low=round_half_up(low_per_sqm),
        median=round_half_up(adjusted_per_sqm),
        high=round_half_up(high_per_sqm),
    )
    return price, per_sqm


# ---------------------------------------------------------------------------
# 4. Engine
# ---------------------------------------------------------------------------


class EstimationEngine:
    """Adaptive radius search → outlier filter → weighting → price range."""

    def __init__(
        self,
        retriever: ComparableSalesRetriever,
        market: MarketStatisticsSummarizer | None = None,
        rules: EstimationRules | None = None,
        today: date | None = None,
    ) -> None:
        self.retriever = retriever
        self.market = market or MarketStatisticsSummarizer(retriever)
        self.rules = rules or EstimationRules()
        self._today = today

    @property
    def today(self) -> date:
        return self._today or date.today()

    async def gather_comparables(self, property_: Property, location: GeoPoint) -> tuple[list[ComparableSale], float]:
        """Widen the radius until enough distinct sales are found.

        Returns the sales deduplicated by id (closest first) and the radius
        the search stopped at. Outliers are not removed here.
        """
        schedule = self.rules.radius
        found: dict[str, ComparableSale] = {}
        radius_used = 0.0

        for radius_km in schedule.radii():
            radius_used = radius_km
            sales = await self.retriever.search(
                location,
                radius_km,
                property_.property_type,
                property_.surface,
                property_.address.postal_code,
            )
            for sale in sales:
                found.setdefault(sale.sale_id, sale)

            logger.debug("radius %.1fkm: %d distinct sales", radius_km, len(found))
            if len(found) >= schedule.min_comparables:
                break

        return sorted(found.values(), key=lambda s: s.distance_m), radius_used

    def retain(self, sales: list[ComparableSale]) -> list[ComparableSale]:
        """Outlier-filtered sales; the full set when the filter would leave nothing."""
        retained = filter_outliers(sales, self.rules.outlier_max_deviation)
        if not retained:
            logger.debug("Outlier filter dropped all %d sales, keeping them", len(sales))
            return list(sales)
        if len(retained) < len(sales):
            logger.debug("Outlier filter dropped %d of %d sales", len(sales) - len(retained), len(sales))
        return retained

    async def estimate(self, property_: Property, location: GeoPoint) -> EstimationResult:
        """Estimate ``property_`` located at ``location``.

        Raises:
            InsufficientComparables: fewer than ``min_comparables`` sales at the maximum radius
        """
        rules = self.rules
        today = self.today
        postal_code = property_.address.postal_code

        found, radius_km = await self.gather_comparables(property_, location)

        if len(found) < rules.radius.min_comparables:
            stats = await self.market.summarize(location, postal_code, rules.market_radius_km)
            logger.info(
                "Insufficient comparables for %s: %d found within %.1fkm",
                postal_code, len(found), radius_km,
            )
            raise InsufficientComparables(
                found=len(found),
                radius_km=radius_km,
                market_statistics=stats,
                required=rules.radius.min_comparables,
            )

        comparables = self.retain(found)
        samples = [weigh_sale(s, property_, radius_km, today, rules.weighting) for s in comparables]
        median_per_sqm = weighted_median(samples)
        low_per_sqm, high_per_sqm = percentile_band([s.price_per_sqm for s in samples])

        energy_per_sqm = energy_adjustment_per_sqm(property_, median_per_sqm, rules.adjustments)
        adjustments = compute_adjustments(property_, energy_per_sqm, rules.adjustments)
        estimated_price, price_per_sqm = assemble_prices(
            property_.surface,
            median_per_sqm,
            low_per_sqm,
            high_per_sqm,
            energy_per_sqm,
            adjustments.non_energy_total,
            rules.adjustments,
        )

        score = confidence_score(
            distances_m=[s.distance_m for s in comparables],
            months_ago=[months_since(s.sale_date, today) for s in comparables],
            prices_per_sqm=[s.price_per_sqm for s in comparables],
            radius_km=radius_km,
            rules=rules.confidence,
        )
        stats = await self.market.summarize(location, postal_code, rules.market_radius_km)

        logger.info(
            "Estimation done: %s, %d comparables within %.1fkm, median %s€ (%s€/m²), confidence %d",
            postal_code, len(comparables), radius_km,
            f"{estimated_price.median:,}", f"{price_per_sqm.median:,}", score,
        )

        return EstimationResult(
            property=property_,
            location=location,
            estimated_price=estimated_price,
            price_per_sqm=price_per_sqm,
            comparables=comparables[: rules.max_displayed_comparables],
            comparables_count=len(comparables),
            radius_km=radius_km,
            confidence_score=score,
            confidence_stars=confidence_stars(score),
            adjustments=adjustments,
            market_statistics=stats,
        )
