"""Comparable Sales Retriever - fetch, validate and distance-filter DVF sales"""

from __future__ import annotations

import asyncio
import logging
from datetime import date

from dvf_estimator.errors import DataSourceUnavailable, MalformedRecord
from dvf_estimator.estimation.rules import RetrievalRules
from dvf_estimator.schemas.property import GeoPoint, PropertyType
from dvf_estimator.schemas.sale import ComparableSale
from dvf_estimator.sources.base import TransactionQuery, TransactionSource
from dvf_estimator.tools.cache import Cache, TTLCache
from dvf_estimator.tools.geo import haversine_m
from dvf_estimator.tools.locality import Locality, resolve_locality

logger = logging.getLogger(__name__)

CACHE_TTL_S = 24 * 60 * 60


# ---------------------------------------------------------------------------
# 1. Row normalization
# ---------------------------------------------------------------------------


def years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:  # 29 February
        return day.replace(year=day.year - years, day=28)


def _parse_number(value, field_name: str) -> float:
    if value is None or value == "":
        raise MalformedRecord(f"missing {field_name}")
    try:
        return float(str(value).strip().replace(",", "."))
    except ValueError:
        raise MalformedRecord(f"non-numeric {field_name}: {value!r}") from None


def _parse_rooms(value) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _parse_type(value) -> PropertyType:
    if isinstance(value, PropertyType):
        return value
    parsed = PropertyType.from_dvf_label(value)
    if parsed is None:
        try:
            parsed = PropertyType(str(value).strip().lower())
        except ValueError:
            raise MalformedRecord(f"unsupported property type: {value!r}") from None
    return parsed


def _parse_date(value) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise MalformedRecord(f"invalid sale date: {value!r}") from None


def normalize_record(row: dict, target: GeoPoint, max_price: float) -> ComparableSale:
    """Validate one canonical raw row and compute its distance to ``target``.

    Raises:
        MalformedRecord: non-numeric or out-of-bounds price/surface, unknown type,
            invalid date or missing coordinates
    """
    sale_id = str(row.get("id") or "").strip()
    if not sale_id:
        raise MalformedRecord("missing id")

    price = _parse_number(row.get("price"), "price")
    if price <= 0 or price > max_price:
        raise MalformedRecord(f"price out of bounds: {price}")

    surface = _parse_number(row.get("surface"), "surface")
    if surface <= 0:
        raise MalformedRecord(f"surface out of bounds: {surface}")

    if row.get("latitude") in (None, "") or row.get("longitude") in (None, ""):
        raise MalformedRecord("missing coordinates")
    location = GeoPoint(
        latitude=_parse_number(row["latitude"], "latitude"),
        longitude=_parse_number(row["longitude"], "longitude"),
    )

    return ComparableSale(
        sale_id=sale_id,
        sale_date=_parse_date(row.get("date")),
        price=price,
        surface=surface,
        rooms=_parse_rooms(row.get("rooms")),
        property_type=_parse_type(row.get("type")),
        address=str(row.get("address") or ""),
        location=location,
        distance_m=haversine_m(target, location),
        approximate_location=bool(row.get("approximate", False)),
    )


# ---------------------------------------------------------------------------
# 2. Retriever
# ---------------------------------------------------------------------------


class ComparableSalesRetriever:
    """Returns valid sales near a point, sorted by distance.

    The source is queried once per (point, type, surface) at ``fetch_radius_km``;
    smaller radii are served by filtering that candidate set in memory. Source
    failures and timeouts yield an empty list and are never cached.
    """

    def __init__(
        self,
        source: TransactionSource,
        cache: Cache | None = None,
        rules: RetrievalRules | None = None,
        timeout_s: float = 10.0,
        cache_ttl_s: float = CACHE_TTL_S,
        fetch_radius_km: float | None = None,
        today: date | None = None,
    ) -> None:
        self.source = source
        self.cache = cache if cache is not None else TTLCache()
        self.rules = rules or RetrievalRules()
        self.timeout_s = timeout_s
        self.cache_ttl_s = cache_ttl_s
        self.fetch_radius_km = fetch_radius_km
        self._today = today

    @property
    def today(self) -> date:
        return self._today or date.today()

    def surface_bounds(self, surface: float) -> tuple[float, float]:
        tolerance = self.rules.surface_tolerance
        return surface * (1 - tolerance), surface * (1 + tolerance)

    async def search(
        self,
        location: GeoPoint,
        radius_km: float,
        property_type: PropertyType,
        surface: float,
        postal_code: str,
    ) -> list[ComparableSale]:
        """Comparable sales of ``property_type`` within ``radius_km`` and the surface band."""
        return await self._retrieve(location, radius_km, postal_code, property_type, surface)

    async def search_area(
        self,
        location: GeoPoint,
        radius_km: float,
        postal_code: str,
        property_type: PropertyType | None = None,
    ) -> list[ComparableSale]:
        """All valid sales within ``radius_km`` (no surface restriction)."""
        return await self._retrieve(location, radius_km, postal_code, property_type, None)

    async def _retrieve(
        self,
        location: GeoPoint,
        radius_km: float,
        postal_code: str,
        property_type: PropertyType | None,
        surface: float | None,
    ) -> list[ComparableSale]:
        locality = resolve_locality(postal_code)
        if locality is None:
            logger.info("Postal code %r does not resolve to a locality", postal_code)
            return []

        type_key = property_type.value if property_type else None
        point_key = (round(location.latitude, 6), round(location.longitude, 6))
        result_key = ("comparables", *point_key, type_key, surface, radius_km)
        cached = self.cache.get(result_key)
        if cached is not None:
            logger.debug("Cache hit: %s", result_key)
            return list(cached)

        fetch_radius = max(radius_km, self.fetch_radius_km or radius_km)
        candidates = await self._candidates(locality, location, fetch_radius, property_type, surface)
        if candidates is None:
            return []

        max_distance_m = radius_km * 1000
        sales = [s for s in candidates if s.distance_m <= max_distance_m][: self.rules.max_results]
        self.cache.set(result_key, tuple(sales), self.cache_ttl_s)
        return sales

    async def _candidates(
        self,
        locality: Locality,
        location: GeoPoint,
        radius_km: float,
        property_type: PropertyType | None,
        surface: float | None,
    ) -> tuple[ComparableSale, ...] | None:
        type_key = property_type.value if property_type else None
        key = ("candidates", round(location.latitude, 6), round(location.longitude, 6), type_key, surface, radius_km)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        min_surface, max_surface = self.surface_bounds(surface) if surface else (None, None)
        query = TransactionQuery(
            locality=locality,
            center=location,
            radius_km=radius_km,
            min_date=years_before(self.today, self.rules.max_age_years),
            property_type=property_type,
            min_surface=min_surface,
            max_surface=max_surface,
            max_results=self.rules.max_results,
        )

        try:
            rows = await asyncio.wait_for(self.source.fetch(query), timeout=self.timeout_s)
        except TimeoutError:
            logger.warning("%s timed out after %.1fs (radius=%.1fkm)", self.source.name, self.timeout_s, radius_km)
            return None
        except DataSourceUnavailable as exc:
            logger.warning("Transaction source failed: %s", exc)
            return None

        candidates = tuple(self._select(rows, query))
        logger.debug(
            "%s: %d rows → %d candidates within %.1fkm",
            self.source.name, len(rows), len(candidates), radius_km,
        )
        self.cache.set(key, candidates, self.cache_ttl_s)
        return candidates

    def _select(self, rows: list[dict], query: TransactionQuery) -> list[ComparableSale]:
        sales: list[ComparableSale] = []
        dropped = 0
        max_distance_m = query.radius_km * 1000
        for row in rows:
            try:
                sale = normalize_record(row, query.center, self.rules.max_price)
            except MalformedRecord as exc:
                dropped += 1
                logger.debug("Dropped row %s: %s", row.get("id"), exc)
                continue

            if query.property_type and sale.property_type is not query.property_type:
                continue
            if query.min_surface is not None and not (query.min_surface <= sale.surface <= query.max_surface):
                continue
            if sale.sale_date < query.min_date:
                continue
            if sale.distance_m > max_distance_m:
                continue
            sales.append(sale)

        if dropped:
            logger.debug("%d malformed rows dropped", dropped)
        sales.sort(key=lambda s: s.distance_m)
        return sales
