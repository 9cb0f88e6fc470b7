"""Persisted DVF store query (database variant)"""

from __future__ import annotations

import logging

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dvf_estimator.errors import DataSourceUnavailable
from dvf_estimator.models.sale import VenteDvf
from dvf_estimator.sources.base import TransactionQuery, TransactionSource, canonical_row, format_address
from dvf_estimator.tools.geo import bounding_box

logger = logging.getLogger(__name__)

DWELLING_LABELS = ["Maison", "Appartement"]


class DatabaseSource(TransactionSource):
    """Reads sales from the ``ventes_dvf`` table."""

    name = "database"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    def build_statement(self, query: TransactionQuery):
        lat_min, lat_max, lon_min, lon_max = bounding_box(query.center, query.radius_km)
        types = [query.property_type.dvf_label] if query.property_type else DWELLING_LABELS

        conditions = [
            VenteDvf.code_departement == query.locality.departement,
            VenteDvf.date_mutation >= query.min_date,
            VenteDvf.type_local.in_(types),
            or_(VenteDvf.nature_mutation.is_(None), VenteDvf.nature_mutation == "Vente"),
            or_(
                and_(
                    VenteDvf.latitude.between(lat_min, lat_max),
                    VenteDvf.longitude.between(lon_min, lon_max),
                ),
                and_(
                    or_(VenteDvf.latitude.is_(None), VenteDvf.longitude.is_(None)),
                    VenteDvf.code_postal == query.locality.postal_code,
                ),
            ),
        ]
        if query.min_surface is not None:
            conditions.append(VenteDvf.surface_reelle_bati >= query.min_surface)
        if query.max_surface is not None:
            conditions.append(VenteDvf.surface_reelle_bati <= query.max_surface)

        return select(VenteDvf).where(*conditions).order_by(VenteDvf.date_mutation.desc())

    async def _commune_centroids(self, session: AsyncSession, communes: set[str]) -> dict[str, tuple[float, float]]:
        if not communes:
            return {}
        stmt = (
            select(VenteDvf.code_commune, func.avg(VenteDvf.latitude), func.avg(VenteDvf.longitude))
            .where(
                VenteDvf.code_commune.in_(communes),
                VenteDvf.latitude.is_not(None),
                VenteDvf.longitude.is_not(None),
            )
            .group_by(VenteDvf.code_commune)
        )
        result = await session.execute(stmt)
        return {code: (lat, lon) for code, lat, lon in result.all() if lat is not None and lon is not None}

    async def fetch(self, query: TransactionQuery) -> list[dict]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(self.build_statement(query))
                sales = result.scalars().all()
                missing = {s.code_commune for s in sales if (s.latitude is None or s.longitude is None) and s.code_commune}
                centroids = await self._commune_centroids(session, missing)
        except SQLAlchemyError as exc:
            raise DataSourceUnavailable(self.name, str(exc)) from exc

        rows: list[dict] = []
        for sale in sales:
            lat, lon, approximate = sale.latitude, sale.longitude, False
            if lat is None or lon is None:
                centroid = centroids.get(sale.code_commune or "")
                if centroid is not None:
                    lat, lon = centroid
                    approximate = True
            rows.append(
                canonical_row(
                    id=sale.id,
                    date=sale.date_mutation.isoformat() if sale.date_mutation else None,
                    price=sale.valeur_fonciere,
                    surface=sale.surface_reelle_bati,
                    rooms=sale.nombre_pieces_principales,
                    type=sale.type_local,
                    address=format_address(sale.adresse_numero, None, sale.adresse_nom_voie, sale.nom_commune),
                    latitude=lat,
                    longitude=lon,
                    approximate=approximate,
                )
            )

        logger.debug("DVF store returned %d rows (dep=%s)", len(rows), query.locality.departement)
        return rows
