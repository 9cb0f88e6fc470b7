"""Property and location schemas"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class PropertyType(str, Enum):
    APARTMENT = "apartment"
    HOUSE = "house"

    @property
    def dvf_label(self) -> str:
        """``type_local`` label used in DVF files."""
        return "Appartement" if self is PropertyType.APARTMENT else "Maison"

    @classmethod
    def from_dvf_label(cls, label: str | None) -> PropertyType | None:
        normalized = (label or "").strip().lower()
        if normalized == "appartement":
            return cls.APARTMENT
        if normalized == "maison":
            return cls.HOUSE
        return None


class EnergyGrade(str, Enum):
    """DPE energy performance grade (NC: not communicated)."""

    A = "A"
    B = "B"
    C = "C"
    D = "D"
    E = "E"
    F = "F"
    G = "G"
    NC = "NC"


class Condition(str, Enum):
    NEW = "new"
    RENOVATED = "renovated"
    GOOD = "good"
    TO_RENOVATE = "to_renovate"


@dataclass(frozen=True)
class Address:
    street: str
    city: str
    postal_code: str

    def label(self) -> str:
        return f"{self.street}, {self.postal_code} {self.city}"


@dataclass(frozen=True)
class GeoPoint:
    """WGS84 coordinates in decimal degrees."""

    latitude: float
    longitude: float


@dataclass(frozen=True)
class GeocodingResult:
    """Geocoder match for an address"""

    location: GeoPoint
    label: str = ""
    score: float = 0.0
    city: str = ""
    postcode: str = ""
    citycode: str = ""


@dataclass(frozen=True)
class Property:
    """Property to estimate (already validated upstream)."""

    address: Address
    property_type: PropertyType
    surface: float  # m²
    rooms: int
    floor: int | None = None
    has_elevator: bool = False
    condition: Condition | None = None
    land_area: float | None = None  # m², houses
    parking_spaces: int = 0
    has_cellar: bool = False
    balcony_area: float | None = None  # m², balcony or terrace
    has_pool: bool = False
    energy_grade: EnergyGrade | None = None
