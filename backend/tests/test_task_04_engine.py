"""Task-04: Estimation Engine, confidence score and market statistics

The engine runs against a real retriever backed by an in-memory source, so
the adaptive radius, the outlier filter and the weighting are exercised end
to end.
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from dvf_estimator.errors import InsufficientComparables
from dvf_estimator.estimation.confidence import confidence_score, confidence_stars
from dvf_estimator.estimation.engine import (
    EstimationEngine,
    assemble_prices,
    ordered_range,
    percentile_band,
    weigh_sale,
    weighted_median,
)
from dvf_estimator.estimation.market import MarketStatisticsSummarizer, summarize_sales
from dvf_estimator.estimation.rules import AdjustmentRates, EstimationRules, RadiusSchedule, WeightingFloors
from dvf_estimator.schemas.property import EnergyGrade
from dvf_estimator.schemas.sale import WeightedSample

from conftest import CENTER, POSTAL_CODE, TODAY, FailingSource, FakeSource, make_row, make_sale

# 3000..3600 within 2 km, a 10000 €/m² outlier at 1.8 km
NEIGHBORHOOD = [
    make_row("a", 3000, distance_m=300),
    make_row("b", 3200, distance_m=800),
    make_row("c", 3400, distance_m=1200),
    make_row("d", 3600, distance_m=1500),
    make_row("outlier", 10000, distance_m=1800),
]


@pytest.fixture
def make_engine(make_retriever):
    def _make(source, **kwargs) -> EstimationEngine:
        return EstimationEngine(make_retriever(source), today=TODAY, **kwargs)

    return _make


def sample(price_per_sqm: float, distance_factor: float = 1.0) -> WeightedSample:
    return WeightedSample(
        sale=make_sale(f"s{price_per_sqm}", price_per_sqm),
        distance_factor=distance_factor,
        recency_factor=1.0,
        surface_factor=1.0,
    )


# ---------------------------------------------------------------------------
# T-1: weighting
# ---------------------------------------------------------------------------


def test_radius_schedule_steps_to_max():
    """Radii go 1 km by 1 km up to 10 km."""
    assert RadiusSchedule().radii() == [float(r) for r in range(1, 11)]


def test_weigh_sale_factors(apartment):
    """Each factor follows its linear decay."""
    sale = make_sale("m1", 3000, surface=84, distance_m=500, days_ago=180)

    weighted = weigh_sale(sale, apartment, 2, TODAY, WeightingFloors())

    assert weighted.distance_factor == pytest.approx(0.75)
    assert weighted.recency_factor == pytest.approx(1 - 6 / 36)
    assert weighted.surface_factor == pytest.approx(0.8)
    assert weighted.weight == pytest.approx(0.75 * (1 - 6 / 36) * 0.8)


def test_weigh_sale_floors(apartment):
    """Far, old and dissimilar sales bottom out at the floors."""
    sale = make_sale("m1", 3000, surface=10, distance_m=1990, days_ago=3 * 365)

    weighted = weigh_sale(sale, apartment, 2, TODAY, WeightingFloors())

    assert weighted.distance_factor == pytest.approx(0.1)
    assert weighted.recency_factor == pytest.approx(0.3)
    assert weighted.surface_factor == pytest.approx(0.5)


def test_weighted_median_prefers_heavier_samples():
    """Heavy samples pull the median towards them."""
    samples = [sample(3000, 0.2), sample(3200, 0.2), sample(4000, 1.0)]

    assert weighted_median(samples) == 4000


def test_weighted_median_tie_takes_crossing_sample():
    """Cumulative weight reaches exactly half at the first sample."""
    assert weighted_median([sample(4000), sample(3000)]) == 3000


def test_weighted_median_degenerate_weights():
    """Zero weights fall back to the positional median."""
    samples = [sample(5000, 0.0), sample(3000, 0.0), sample(4000, 0.0)]

    assert weighted_median(samples) == 4000


def test_weighted_median_empty():
    """An empty sample is an error."""
    with pytest.raises(ValueError):
        weighted_median([])


def test_percentile_band_uses_count_positions():
    """Quartiles are taken by position, no interpolation."""
    assert percentile_band([3600, 3000, 3400, 3200]) == (3200, 3600)
    assert percentile_band([3000, 3100, 3200]) == (3000, 3200)


# ---------------------------------------------------------------------------
# T-2: price assembly
# ---------------------------------------------------------------------------


def test_assemble_prices_applies_extras_with_factors():
    """Extras are scaled for the low and high bounds."""
    price, per_sqm = assemble_prices(70, 3000, 2800, 3300, 0.0, 10_000, AdjustmentRates())

    assert (price.low, price.median, price.high) == (204_000, 220_000, 243_000)
    assert (per_sqm.low, per_sqm.median, per_sqm.high) == (2800, 3000, 3300)


def test_assemble_prices_energy_moves_median_only():
    """Energy shifts the median, not the band."""
    price, per_sqm = assemble_prices(70, 3000, 2800, 3300, 300.0, 0, AdjustmentRates())

    assert price.median == 231_000
    assert per_sqm.median == 3300
    assert price.low <= price.median <= price.high


def test_ordered_range_clamps():
    """low <= median <= high always holds."""
    clamped = ordered_range(low=230, median=220, high=210)

    assert (clamped.low, clamped.median, clamped.high) == (220, 220, 220)


# ---------------------------------------------------------------------------
# T-3: adaptive radius search
# ---------------------------------------------------------------------------

# three distinct sales within 1 km, one of them an outlier
OUTLIER_NEARBY = [
    make_row("a", 3000, distance_m=300),
    make_row("b", 3100, distance_m=500),
    make_row("x", 10000, distance_m=800),
]


@pytest.mark.asyncio
async def test_radius_widens_until_enough_comparables(make_engine, apartment):
    """1 km holds 2 sales, 2 km holds 5: the search stops at 2 km."""
    source = FakeSource(NEIGHBORHOOD)
    engine = make_engine(source)

    comparables, radius_km = await engine.gather_comparables(apartment, CENTER)

    assert radius_km == 2
    assert [s.sale_id for s in comparables] == ["a", "b", "c", "d", "outlier"]
    assert [q.radius_km for q in source.queries] == [1, 2]


@pytest.mark.asyncio
async def test_radius_stops_on_distinct_count_even_with_outlier(make_engine, apartment):
    """An outlier among the first 3 sales does not widen the search."""
    source = FakeSource([*OUTLIER_NEARBY, make_row("d", 3200, distance_m=4500)])
    engine = make_engine(source)

    comparables, radius_km = await engine.gather_comparables(apartment, CENTER)

    assert radius_km == 1
    assert [s.sale_id for s in comparables] == ["a", "b", "x"]
    assert [q.radius_km for q in source.queries] == [1]


@pytest.mark.asyncio
async def test_radius_deduplicates_across_attempts(make_engine, apartment):
    """Sales seen at 1 km and again at 2 km count once."""
    rows = [make_row("a", 3000, distance_m=300), make_row("b", 3100, distance_m=1500)]
    engine = make_engine(FakeSource(rows))

    comparables, radius_km = await engine.gather_comparables(apartment, CENTER)

    assert [s.sale_id for s in comparables] == ["a", "b"]
    assert radius_km == 10


@pytest.mark.asyncio
async def test_radius_never_exceeds_max(make_engine, apartment):
    """A failing source is retried at every radius up to 10 km, never beyond."""
    source = FailingSource()
    engine = make_engine(source)

    comparables, radius_km = await engine.gather_comparables(apartment, CENTER)

    assert comparables == []
    assert radius_km == 10
    assert max(q.radius_km for q in source.queries) == 10


@pytest.mark.asyncio
async def test_custom_schedule_is_honoured(make_retriever, apartment):
    """0.5 km steps with a minimum of 2 stop at 1 km."""
    rules = EstimationRules(radius=RadiusSchedule(initial_km=0.5, step_km=0.5, max_km=1.5, min_comparables=2))
    source = FakeSource([make_row("a", 3000, distance_m=200), make_row("b", 3100, distance_m=900)])
    engine = EstimationEngine(make_retriever(source), rules=rules, today=TODAY)

    comparables, radius_km = await engine.gather_comparables(apartment, CENTER)

    assert radius_km == 1.0
    assert len(comparables) == 2


def test_retain_keeps_everything_when_filter_empties_set(make_engine):
    """Two price clusters, both far from the median: nothing is discarded."""
    engine = make_engine(FakeSource([]))
    sales = [make_sale("a", 1000), make_sale("b", 1000), make_sale("c", 10000), make_sale("d", 10000)]

    assert engine.retain(sales) == sales


# ---------------------------------------------------------------------------
# T-4: estimate
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_estimate_end_to_end(make_engine, apartment):
    """Full estimate on a well-covered neighbourhood."""
    engine = make_engine(FakeSource(NEIGHBORHOOD))

    result = await engine.estimate(apartment, CENTER)

    assert result.radius_km == 2
    assert result.comparables_count == 4
    assert "outlier" not in {s.sale_id for s in result.comparables}
    # weights 0.85, 0.6, 0.4, 0.25 (x recency): half the total is crossed at 3200
    assert result.price_per_sqm.median == 3200
    assert (result.price_per_sqm.low, result.price_per_sqm.high) == (3200, 3600)
    assert result.estimated_price.median == 224_000
    assert (result.estimated_price.low, result.estimated_price.high) == (224_000, 252_000)
    assert result.confidence_score == 23
    assert result.confidence_stars == 2
    assert result.adjustments.non_energy_total == 0


@pytest.mark.asyncio
async def test_estimate_includes_market_statistics(make_engine, apartment):
    """Market statistics ride along with the estimate."""
    engine = make_engine(FakeSource(NEIGHBORHOOD))

    stats = (await engine.estimate(apartment, CENTER)).market_statistics

    assert stats.number_of_sales == 5
    assert stats.radius_km == 5
    assert stats.average_price == 324_800
    assert stats.median_price == 238_000
    assert stats.median_price_per_sqm == 3400


@pytest.mark.asyncio
async def test_estimate_applies_energy_and_features(make_engine, apartment):
    """Energy class and features show up in the price."""
    apartment = replace(apartment, floor=0, energy_grade=EnergyGrade.A, has_cellar=True)
    engine = make_engine(FakeSource(NEIGHBORHOOD))

    result = await engine.estimate(apartment, CENTER)

    assert result.adjustments.energy == 22_400
    assert result.adjustments.floor == -5_000
    assert result.adjustments.cellar == 5_000
    assert result.price_per_sqm.median == 3520
    assert result.estimated_price.median == 246_000


@pytest.mark.asyncio
async def test_estimate_orders_and_caps_comparables(make_engine, apartment):
    """Comparables are closest first and capped for display."""
    rows = [make_row(f"m{i:02d}", 3000 + i, distance_m=900 - 25 * i) for i in range(30)]
    engine = make_engine(FakeSource(rows))

    result = await engine.estimate(apartment, CENTER)

    distances = [s.distance_m for s in result.comparables]
    assert result.comparables_count == 30
    assert len(result.comparables) == 23
    assert distances == sorted(distances)
    assert result.estimated_price.low <= result.estimated_price.median <= result.estimated_price.high
    assert 0 <= result.confidence_score <= 100


@pytest.mark.asyncio
async def test_insufficient_comparables_carries_market_statistics(make_engine, apartment):
    """Too few sales still report the local market."""
    engine = make_engine(FakeSource(NEIGHBORHOOD[:2]))

    with pytest.raises(InsufficientComparables) as exc_info:
        await engine.estimate(apartment, CENTER)

    error = exc_info.value
    assert error.found == 2
    assert error.radius_km == 10
    assert error.market_statistics.number_of_sales == 2
    assert "Only 2 comparable sale(s) found within 10 km" in str(error)
    assert "217 000 €" in str(error)


@pytest.mark.asyncio
async def test_insufficient_comparables_without_any_sale(make_engine, apartment):
    """No sale at all reaches the maximum radius."""
    engine = make_engine(FakeSource([]))

    with pytest.raises(InsufficientComparables) as exc_info:
        await engine.estimate(apartment, CENTER)

    assert exc_info.value.market_statistics.number_of_sales == 0
    assert "No recent sales" in str(exc_info.value)


@pytest.mark.asyncio
async def test_three_found_with_one_outlier_still_estimates(make_engine, apartment):
    """3 distinct sales at 1 km are enough; the outlier is dropped afterwards."""
    engine = make_engine(FakeSource(OUTLIER_NEARBY))

    result = await engine.estimate(apartment, CENTER)

    assert result.radius_km == 1
    assert [s.sale_id for s in result.comparables] == ["a", "b"]
    assert result.comparables_count == 2
    # weights 0.7 and 0.5: half the total is crossed at 3000
    assert result.price_per_sqm.median == 3000
    assert (result.estimated_price.low, result.estimated_price.median, result.estimated_price.high) == (
        210_000,
        210_000,
        217_000,
    )


# ---------------------------------------------------------------------------
# T-5: confidence
# ---------------------------------------------------------------------------


def test_confidence_empty_is_zero():
    """No comparables, no confidence."""
    assert confidence_score([], [], [], radius_km=1) == 0


def test_confidence_perfect_set():
    """Close, recent, uniform sales score the maximum."""
    assert confidence_score([0.0] * 20, [0.0] * 20, [3000.0] * 20, radius_km=1) == 100


def test_confidence_is_bounded():
    """Score stays within 0..100."""
    score = confidence_score([5000.0] * 3, [40.0] * 3, [1000.0, 3000.0, 9000.0], radius_km=1)

    assert 0 <= score <= 100


@pytest.mark.parametrize(
    ("score", "stars"),
    [(0, 0), (1, 1), (20, 1), (21, 2), (59, 3), (80, 4), (100, 5)],
)
def test_confidence_stars(score, stars):
    """Star thresholds."""
    assert confidence_stars(score) == stars


# ---------------------------------------------------------------------------
# T-6: market statistics
# ---------------------------------------------------------------------------


def test_summarize_sales_empty_is_zeroed():
    """An empty market is zeroed over the default period."""
    stats = summarize_sales([], radius_km=5)

    assert stats.number_of_sales == 0
    assert stats.average_price == 0
    assert stats.median_price_per_sqm == 0
    assert stats.period == "last 3 years"


def test_summarize_sales_one_year_period():
    """A one-year lookback is labelled "last year"."""
    stats = summarize_sales([make_sale("m1", 3000)], radius_km=5, years=1)

    assert stats.period == "last year"
    assert stats.average_price == 210_000


@pytest.mark.asyncio
async def test_market_statistics_ignore_surface(make_retriever):
    """Market statistics are not restricted by surface."""
    rows = [make_row("studio", 5000, surface=18), make_row("loft", 3000, surface=200)]
    summarizer = MarketStatisticsSummarizer(make_retriever(FakeSource(rows)))

    stats = await summarizer.summarize(CENTER, POSTAL_CODE)

    assert stats.number_of_sales == 2
    assert stats.average_price_per_sqm == 4000
    assert stats.radius_km == 5


@pytest.mark.asyncio
async def test_market_statistics_zeroed_on_failure(make_retriever):
    """Source failure gives zeroed statistics."""
    summarizer = MarketStatisticsSummarizer(make_retriever(FailingSource()))

    stats = await summarizer.summarize(CENTER, POSTAL_CODE, radius_km=3)

    assert stats.number_of_sales == 0
    assert stats.average_price == 0
    assert stats.radius_km == 3
