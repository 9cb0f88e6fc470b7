"""Estimation result schemas"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from dvf_estimator.schemas.property import GeoPoint, Property
from dvf_estimator.schemas.sale import ComparableSale


@dataclass(frozen=True)
class PriceRange:
    """Price range (low <= median <= high)"""

    low: int = 0
    median: int = 0
    high: int = 0


@dataclass(frozen=True)
class Adjustments:
    """Itemized feature adjustments (€)"""

    energy: int = 0  # DPE adjustment per m² x surface
    floor: int = 0
    parking: int = 0
    cellar: int = 0
    balcony: int = 0
    pool: int = 0
    land: int = 0
    condition: int = 0

    @property
    def non_energy_total(self) -> int:
        return self.floor + self.parking + self.cellar + self.balcony + self.pool + self.land + self.condition


@dataclass(frozen=True)
class MarketStatistics:
    """Neighborhood sale statistics, independent of the estimated property"""

    average_price: int = 0
    median_price: int = 0
    average_price_per_sqm: int = 0
    median_price_per_sqm: int = 0
    number_of_sales: int = 0
    period: str = "last 3 years"
    radius_km: float = 0.0


@dataclass(frozen=True)
class EstimationResult:
    """Final estimation"""

    property: Property
    location: GeoPoint
    estimated_price: PriceRange
    price_per_sqm: PriceRange
    comparables: list[ComparableSale] = field(default_factory=list)
    comparables_count: int = 0
    radius_km: float = 0.0
    confidence_score: int = 0  # 0-100
    confidence_stars: int = 0  # 0-5
    adjustments: Adjustments = field(default_factory=Adjustments)
    market_statistics: MarketStatistics = field(default_factory=MarketStatistics)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
