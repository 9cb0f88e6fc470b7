"""Estimation pipeline: geocode → comparables → price"""

from __future__ import annotations

import logging
from typing import Protocol

from dvf_estimator.config import Settings
from dvf_estimator.estimation.engine import EstimationEngine
from dvf_estimator.estimation.market import MarketStatisticsSummarizer
from dvf_estimator.estimation.retriever import ComparableSalesRetriever
from dvf_estimator.estimation.rules import EstimationRules
from dvf_estimator.schemas.estimation import EstimationResult
from dvf_estimator.schemas.property import GeocodingResult, Property
from dvf_estimator.sources import build_transaction_source
from dvf_estimator.tools.cache import Cache, TTLCache
from dvf_estimator.tools.geocoding import BanGeocoder

logger = logging.getLogger(__name__)


class Geocoder(Protocol):
    async def geocode(self, street: str, city: str, postal_code: str) -> GeocodingResult: ...


async def estimate_property(property_: Property, geocoder: Geocoder, engine: EstimationEngine) -> EstimationResult:
    """Run a full estimation.

    Raises:
        AddressResolutionFailure: the address could not be geocoded
        InsufficientComparables: not enough comparable sales around the address
    """
    address = property_.address
    logger.info("Estimating %s (%s, %.0fm²)", address.label(), property_.property_type.value, property_.surface)

    geocoded = await geocoder.geocode(address.street, address.city, address.postal_code)
    return await engine.estimate(property_, geocoded.location)


def build_engine(settings: Settings, cache: Cache | None = None, rules: EstimationRules | None = None) -> EstimationEngine:
    rules = rules or EstimationRules()
    retriever = ComparableSalesRetriever(
        build_transaction_source(settings),
        cache=cache if cache is not None else TTLCache(),
        rules=rules.retrieval,
        timeout_s=settings.retrieval_timeout_s,
        cache_ttl_s=settings.cache_ttl_s,
        fetch_radius_km=rules.radius.max_km,
    )
    return EstimationEngine(retriever, MarketStatisticsSummarizer(retriever), rules)


def build_geocoder(settings: Settings) -> BanGeocoder:
    return BanGeocoder(settings.geocoder_url, timeout=settings.retrieval_timeout_s)
