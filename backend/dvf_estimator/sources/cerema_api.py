"""Cerema DVF open API client (remote query variant)"""

from __future__ import annotations

import logging

import httpx

from dvf_estimator.errors import DataSourceUnavailable
from dvf_estimator.sources.base import TransactionQuery, TransactionSource, canonical_row, format_address
from dvf_estimator.tools.geo import bounding_box

logger = logging.getLogger(__name__)

DWELLING_LABELS = ["Maison", "Appartement"]


def parse_cerema_response(payload: dict) -> list[dict]:
    """Convert a Cerema ``recherche`` payload into canonical raw rows."""
    results = payload.get("resultats") if isinstance(payload, dict) else None
    if not isinstance(results, list):
        raise ValueError("missing 'resultats' list")

    rows: list[dict] = []
    for i, item in enumerate(results):
        if not isinstance(item, dict):
            continue
        sale_id = item.get("id_mutation") or f"{item.get('date_mutation')}_{i}"
        rows.append(
            canonical_row(
                id=str(sale_id),
                date=item.get("date_mutation"),
                price=item.get("valeur_fonciere"),
                surface=item.get("surface_reelle_bati"),
                rooms=item.get("nombre_pieces_principales"),
                type=item.get("type_local"),
                address=format_address(
                    item.get("adresse_numero"),
                    item.get("adresse_suffixe"),
                    item.get("adresse_nom_voie"),
                    item.get("nom_commune") or item.get("code_commune"),
                ),
                latitude=item.get("latitude"),
                longitude=item.get("longitude"),
            )
        )
    return rows


class CeremaApiSource(TransactionSource):
    """Searches transactions in a bounding box through the Cerema API."""

    name = "cerema_api"

    def __init__(
        self,
        url: str,
        timeout: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._transport = transport

    def build_request_body(self, query: TransactionQuery) -> dict:
        lat_min, lat_max, lon_min, lon_max = bounding_box(query.center, query.radius_km)
        types = [query.property_type.dvf_label] if query.property_type else DWELLING_LABELS
        return {
            "rectangle": {
                "lat_min": lat_min,
                "lat_max": lat_max,
                "lon_min": lon_min,
                "lon_max": lon_max,
            },
            "date_min": query.min_date.isoformat(),
            "nature_mutation": ["Vente"],
            "type_local": types,
        }

    async def fetch(self, query: TransactionQuery) -> list[dict]:
        body = self.build_request_body(query)
        logger.debug("Cerema request: %s", body)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=body)
                response.raise_for_status()
            rows = parse_cerema_response(response.json())
        except httpx.HTTPError as exc:
            raise DataSourceUnavailable(self.name, str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            raise DataSourceUnavailable(self.name, f"malformed response: {exc}") from exc

        logger.debug("Cerema API returned %d rows (dep=%s)", len(rows), query.locality.departement)
        return rows
