"""Comparable sale schemas"""

from dataclasses import dataclass
from datetime import date

from dvf_estimator.schemas.property import GeoPoint, PropertyType


@dataclass(frozen=True)
class ComparableSale:
    """Past DVF transaction used as evidence"""

    sale_id: str
    sale_date: date
    price: float  # €
    surface: float  # m²
    rooms: int | None
    property_type: PropertyType
    address: str
    location: GeoPoint
    distance_m: float = 0.0
    approximate_location: bool = False  # coordinates of the commune, not the parcel

    @property
    def price_per_sqm(self) -> float:
        return self.price / self.surface


@dataclass(frozen=True)
class WeightedSample:
    """Price-per-m² of a comparable paired with its relevance weight"""

    sale: ComparableSale
    distance_factor: float
    recency_factor: float
    surface_factor: float

    @property
    def price_per_sqm(self) -> float:
        return self.sale.price_per_sqm

    @property
    def weight(self) -> float:
        return self.distance_factor * self.recency_factor * self.surface_factor
