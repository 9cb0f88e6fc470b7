"""Estimation and address autocomplete endpoints."""

from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from dvf_estimator.api.deps import get_engine, get_geocoder
from dvf_estimator.errors import AddressResolutionFailure, InsufficientComparables
from dvf_estimator.estimation.engine import EstimationEngine
from dvf_estimator.estimation.pipeline import estimate_property
from dvf_estimator.schemas.estimation import EstimationResult
from dvf_estimator.schemas.property import Address, Condition, EnergyGrade, Property, PropertyType
from dvf_estimator.tools.geocoding import BanGeocoder

logger = logging.getLogger("dvf_estimator.api")

router = APIRouter()


# ---------------------------------------------------------------------------
# Request / response helpers
# ---------------------------------------------------------------------------


class EstimateRequest(BaseModel):
    street: str = Field(min_length=1, description="Street and number")
    city: str = Field(min_length=1)
    postal_code: str = Field(pattern=r"^\d{5}$")
    property_type: PropertyType
    surface: float = Field(ge=10, le=1000, description="Living area (m²)")
    rooms: int = Field(ge=1, le=20)
    floor: int | None = Field(default=None, ge=0, le=50)
    has_elevator: bool = False
    condition: Condition | None = None
    land_area: float | None = Field(default=None, ge=0)
    parking_spaces: int = Field(default=0, ge=0, le=20)
    has_cellar: bool = False
    balcony_area: float | None = Field(default=None, ge=0)
    has_pool: bool = False
    energy_grade: EnergyGrade | None = None

    def to_property(self) -> Property:
        return Property(
            address=Address(street=self.street, city=self.city, postal_code=self.postal_code),
            property_type=self.property_type,
            surface=self.surface,
            rooms=self.rooms,
            floor=self.floor,
            has_elevator=self.has_elevator,
            condition=self.condition,
            land_area=self.land_area,
            parking_spaces=self.parking_spaces,
            has_cellar=self.has_cellar,
            balcony_area=self.balcony_area,
            has_pool=self.has_pool,
            energy_grade=self.energy_grade,
        )


def serialize_result(result: EstimationResult) -> dict:
    """EstimationResult → JSON-ready dict (comparables carry their price per m²)."""
    data = asdict(result)
    for item, sale in zip(data["comparables"], result.comparables):
        item["price_per_sqm"] = round(sale.price_per_sqm)
    data["adjustments"]["non_energy_total"] = result.adjustments.non_energy_total
    return jsonable_encoder(data)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/estimate")
async def create_estimate(
    request: EstimateRequest,
    engine: EstimationEngine = Depends(get_engine),
    geocoder: BanGeocoder = Depends(get_geocoder),
) -> dict:
    """Estimate a property from comparable DVF sales."""
    try:
        result = await estimate_property(request.to_property(), geocoder, engine)
    except AddressResolutionFailure as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InsufficientComparables as exc:
        raise HTTPException(
            status_code=422,
            detail={
                "message": str(exc),
                "comparables_found": exc.found,
                "required": exc.required,
                "radius_km": exc.radius_km,
                "market_statistics": jsonable_encoder(asdict(exc.market_statistics)),
            },
        ) from exc

    return serialize_result(result)


@router.get("/addresses")
async def search_addresses(
    q: str = Query(min_length=3, description="Free-text address"),
    limit: int = Query(5, ge=1, le=20),
    geocoder: BanGeocoder = Depends(get_geocoder),
) -> list[dict]:
    """Address autocomplete."""
    results = await geocoder.search_addresses(q, limit=limit)
    return [jsonable_encoder(asdict(r)) for r in results]
