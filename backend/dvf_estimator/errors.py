"""Estimation error taxonomy.

Only ``AddressResolutionFailure`` and ``InsufficientComparables`` are meant to
reach callers; ``DataSourceUnavailable`` and ``MalformedRecord`` are absorbed
by the retriever and only shrink the comparable set.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from dvf_estimator.tools.formatting import format_euros

if TYPE_CHECKING:
    from dvf_estimator.schemas.estimation import MarketStatistics


class EstimatorError(Exception):
    """Base class for estimation errors."""


class AddressResolutionFailure(EstimatorError):
    """The geocoder returned no match or failed."""

    def __init__(self, address: str = "", reason: str = "") -> None:
        self.address = address
        self.reason = reason
        super().__init__("address not found")


class DataSourceUnavailable(EstimatorError):
    """A transaction source call failed (network, upstream status, bad payload)."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"{source} unavailable: {reason}")


class MalformedRecord(EstimatorError):
    """A single dataset row failed the validity filters."""


class InsufficientComparables(EstimatorError):
    """Fewer comparable sales than required, even at the maximum radius."""

    def __init__(
        self,
        found: int,
        radius_km: float,
        market_statistics: MarketStatistics,
        required: int = 3,
    ) -> None:
        self.found = found
        self.radius_km = radius_km
        self.required = required
        self.market_statistics = market_statistics
        super().__init__(self._build_message())

    def _build_message(self) -> str:
        message = (
            f"Only {self.found} comparable sale(s) found within {self.radius_km:g} km "
            f"({self.required} required), no reliable estimate can be produced."
        )
        stats = self.market_statistics
        if stats.number_of_sales > 0:
            message += (
                f" In this area the average sale price is {format_euros(stats.average_price)}"
                f" ({format_euros(stats.average_price_per_sqm)}/m²) over"
                f" {stats.number_of_sales} sales, {stats.period}."
            )
        else:
            message += " No recent sales were found in this area either."
        return message
