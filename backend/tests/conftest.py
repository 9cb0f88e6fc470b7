from __future__ import annotations

import math
from datetime import date, timedelta

import pytest

from dvf_estimator.errors import DataSourceUnavailable
from dvf_estimator.estimation.retriever import ComparableSalesRetriever
from dvf_estimator.schemas.property import Address, GeoPoint, Property, PropertyType
from dvf_estimator.schemas.sale import ComparableSale
from dvf_estimator.sources.base import TransactionQuery, TransactionSource, canonical_row
from dvf_estimator.tools.cache import TTLCache

TODAY = date(2025, 6, 1)
# Rouen, place du Vieux-Marché
CENTER = GeoPoint(latitude=49.4432, longitude=1.0875)
POSTAL_CODE = "76000"


def offset_point(center: GeoPoint, north_m: float) -> GeoPoint:
    """Point ``north_m`` meters due north of ``center``."""
    return GeoPoint(latitude=center.latitude + math.degrees(north_m / 6_371_000), longitude=center.longitude)


def make_row(
    sale_id: str,
    price_per_sqm: float,
    surface: float = 70,
    distance_m: float = 300,
    days_ago: int = 90,
    property_type: str = "Appartement",
    approximate: bool = False,
) -> dict:
    point = offset_point(CENTER, distance_m)
    return canonical_row(
        id=sale_id,
        date=(TODAY - timedelta(days=days_ago)).isoformat(),
        price=price_per_sqm * surface,
        surface=surface,
        rooms=3,
        type=property_type,
        address=f"{sale_id} rue du Gros-Horloge, Rouen",
        latitude=point.latitude,
        longitude=point.longitude,
        approximate=approximate,
    )


def make_sale(
    sale_id: str,
    price_per_sqm: float,
    surface: float = 70,
    distance_m: float = 300,
    days_ago: int = 90,
) -> ComparableSale:
    return ComparableSale(
        sale_id=sale_id,
        sale_date=TODAY - timedelta(days=days_ago),
        price=price_per_sqm * surface,
        surface=surface,
        rooms=3,
        property_type=PropertyType.APARTMENT,
        address=f"{sale_id} rue du Gros-Horloge, Rouen",
        location=offset_point(CENTER, distance_m),
        distance_m=distance_m,
    )


class FakeSource(TransactionSource):
    """In-memory source returning fixed rows, recording every query."""

    name = "fake"

    def __init__(self, rows: list[dict] | None = None, error: Exception | None = None) -> None:
        self.rows = rows or []
        self.error = error
        self.queries: list[TransactionQuery] = []

    async def fetch(self, query: TransactionQuery) -> list[dict]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return list(self.rows)


class FailingSource(FakeSource):
    def __init__(self) -> None:
        super().__init__(error=DataSourceUnavailable("fake", "HTTP 503"))


@pytest.fixture
def apartment() -> Property:
    return Property(
        address=Address(street="12 rue du Gros-Horloge", city="Rouen", postal_code=POSTAL_CODE),
        property_type=PropertyType.APARTMENT,
        surface=70,
        rooms=3,
    )


@pytest.fixture
def make_retriever():
    def _make(source: TransactionSource, **kwargs) -> ComparableSalesRetriever:
        kwargs.setdefault("cache", TTLCache())
        kwargs.setdefault("today", TODAY)
        return ComparableSalesRetriever(source, **kwargs)

    return _make
