"""Transaction source capability.

Every source returns *canonical raw rows*: plain dicts with the keys below.
Values are passed through untouched as far as possible; validation happens
in the retriever so that one malformed row never aborts a batch.

    id, date, price, surface, rooms, type, address, latitude, longitude, approximate
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date

from dvf_estimator.schemas.property import GeoPoint, PropertyType
from dvf_estimator.tools.locality import Locality


@dataclass(frozen=True)
class TransactionQuery:
    """Bounding filters passed to a source (sources may apply them loosely)."""

    locality: Locality
    center: GeoPoint
    radius_km: float
    min_date: date
    property_type: PropertyType | None = None
    min_surface: float | None = None
    max_surface: float | None = None
    max_results: int = 200


class TransactionSource(ABC):
    """Fetch raw DVF transaction rows for a locality."""

    name: str = "source"

    @abstractmethod
    async def fetch(self, query: TransactionQuery) -> list[dict]:
        """Return canonical raw rows.

        Raises:
            DataSourceUnavailable: network error, upstream 4xx/5xx, unreadable payload
        """


def canonical_row(
    *,
    id: str,
    date: str | None,
    price,
    surface,
    rooms,
    type: str | None,
    address: str,
    latitude,
    longitude,
    approximate: bool = False,
) -> dict:
    return {
        "id": id,
        "date": date,
        "price": price,
        "surface": surface,
        "rooms": rooms,
        "type": type,
        "address": address,
        "latitude": latitude,
        "longitude": longitude,
        "approximate": approximate,
    }


def format_address(numero, suffixe, voie, commune) -> str:
    """``12 B RUE DES LILAS, Rouen`` from DVF address columns."""
    street = " ".join(str(p).strip() for p in (numero, suffixe, voie) if p not in (None, "") and str(p).strip())
    commune = str(commune).strip() if commune else ""
    if street and commune:
        return f"{street}, {commune}"
    return street or commune
