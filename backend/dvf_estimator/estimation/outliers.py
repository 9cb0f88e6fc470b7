"""Outlier Filter - drop aberrant price-per-m² sales"""

from __future__ import annotations

from statistics import median

from dvf_estimator.schemas.sale import ComparableSale

MIN_SALES_TO_FILTER = 3


def filter_outliers(sales: list[ComparableSale], max_deviation: float = 0.3) -> list[ComparableSale]:
    """Keep sales whose price-per-m² is within ``max_deviation`` of the median.

    Fewer than 3 sales are returned unchanged (too little data to judge
    dispersion). Input order is preserved.

    Examples:
        prices/m² [3000, 3200, 3400, 3600, 10000] → median 3400, threshold 1020,
        10000 is dropped.
    """
    if len(sales) < MIN_SALES_TO_FILTER:
        return list(sales)

    reference = median(s.price_per_sqm for s in sales)
    threshold = max_deviation * reference
    return [s for s in sales if abs(s.price_per_sqm - reference) <= threshold]
