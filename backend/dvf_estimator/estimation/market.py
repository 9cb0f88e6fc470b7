"""Market Statistics Summarizer - neighborhood price context"""

from __future__ import annotations

import logging
from statistics import mean, median

from dvf_estimator.estimation.retriever import ComparableSalesRetriever
from dvf_estimator.schemas.estimation import MarketStatistics
from dvf_estimator.schemas.property import GeoPoint, PropertyType
from dvf_estimator.schemas.sale import ComparableSale
from dvf_estimator.tools.formatting import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_KM = 5.0


def period_label(years: int) -> str:
    return "last year" if years == 1 else f"last {years} years"


def summarize_sales(sales: list[ComparableSale], radius_km: float, years: int = 3) -> MarketStatistics:
    """Mean / median sale price and price per m² of ``sales``."""
    period = period_label(years)
    if not sales:
        return MarketStatistics(period=period, radius_km=radius_km)

    prices = [s.price for s in sales]
    per_sqm = [s.price_per_sqm for s in sales]
    return MarketStatistics(
        average_price=round_half_up(mean(prices)),
        median_price=round_half_up(median(prices)),
        average_price_per_sqm=round_half_up(mean(per_sqm)),
        median_price_per_sqm=round_half_up(median(per_sqm)),
        number_of_sales=len(sales),
        period=period,
        radius_km=radius_km,
    )


class MarketStatisticsSummarizer:
    """Aggregates every valid sale around a point, whatever its surface."""

    def __init__(self, retriever: ComparableSalesRetriever) -> None:
        self.retriever = retriever

    async def summarize(
        self,
        location: GeoPoint,
        postal_code: str,
        radius_km: float = DEFAULT_RADIUS_KM,
        property_type: PropertyType | None = None,
    ) -> MarketStatistics:
        """Never raises: retrieval problems give a zeroed result."""
        sales = await self.retriever.search_area(location, radius_km, postal_code, property_type)
        stats = summarize_sales(sales, radius_km, self.retriever.rules.max_age_years)
        logger.info(
            "Market statistics (%.1fkm, %s): %d sales, average %s€, median %s€",
            radius_km, postal_code, stats.number_of_sales,
            f"{stats.average_price:,}", f"{stats.median_price:,}",
        )
        return stats
