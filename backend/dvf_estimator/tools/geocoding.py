"""Base Adresse Nationale geocoder client"""

from __future__ import annotations

import logging

import httpx

from dvf_estimator.errors import AddressResolutionFailure
from dvf_estimator.schemas.property import GeocodingResult, GeoPoint

logger = logging.getLogger(__name__)

BAN_SEARCH_URL = "https://api-adresse.data.gouv.fr/search/"


def parse_feature(feature: dict) -> GeocodingResult:
    """GeoJSON feature of the BAN API → GeocodingResult (coordinates are [lon, lat])."""
    longitude, latitude = feature["geometry"]["coordinates"][:2]
    props = feature.get("properties") or {}
    return GeocodingResult(
        location=GeoPoint(latitude=float(latitude), longitude=float(longitude)),
        label=props.get("label", ""),
        score=float(props.get("score") or 0.0),
        city=props.get("city", ""),
        postcode=props.get("postcode", ""),
        citycode=props.get("citycode", ""),
    )


class BanGeocoder:
    """Resolves French addresses with api-adresse.data.gouv.fr."""

    def __init__(
        self,
        url: str = BAN_SEARCH_URL,
        timeout: float = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def _search(self, params: dict) -> list[dict]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(self.url, params=params)
            response.raise_for_status()
        return response.json().get("features") or []

    async def geocode(self, street: str, city: str, postal_code: str) -> GeocodingResult:
        """Best match for the address.

        Raises:
            AddressResolutionFailure: no match, upstream error or malformed payload
        """
        query = f"{street}, {postal_code} {city}"
        try:
            features = await self._search({"q": query, "limit": 1, "autocomplete": 0})
            if not features:
                raise AddressResolutionFailure(query, "no match")
            result = parse_feature(features[0])
        except AddressResolutionFailure:
            logger.info("Address not found: %s", query)
            raise
        except httpx.HTTPError as exc:
            logger.warning("Geocoding error for %r: %s", query, exc)
            raise AddressResolutionFailure(query, str(exc)) from exc
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("Malformed geocoding response for %r: %s", query, exc)
            raise AddressResolutionFailure(query, f"malformed response: {exc}") from exc

        logger.debug("Geocoded %r → %s (score=%.2f)", query, result.label, result.score)
        return result

    async def search_addresses(self, text: str, limit: int = 5) -> list[GeocodingResult]:
        """Autocomplete suggestions; empty list on any upstream problem."""
        try:
            features = await self._search({"q": text, "limit": limit, "autocomplete": 1})
            return [parse_feature(f) for f in features]
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("Address search failed for %r: %s", text, exc)
            return []
