"""Great-circle distance and bounding boxes"""

from __future__ import annotations

import math

from dvf_estimator.schemas.property import GeoPoint

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE_LAT = 111.32


def haversine_m(a: GeoPoint, b: GeoPoint) -> float:
    """Haversine distance between two points, in meters."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = math.radians(b.latitude - a.latitude)
    dlon = math.radians(b.longitude - a.longitude)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c * 1000


def bounding_box(center: GeoPoint, radius_km: float) -> tuple[float, float, float, float]:
    """(lat_min, lat_max, lon_min, lon_max) enclosing a circle of ``radius_km``."""
    lat_delta = radius_km / KM_PER_DEGREE_LAT
    cos_lat = max(math.cos(math.radians(center.latitude)), 1e-6)
    lon_delta = radius_km / (KM_PER_DEGREE_LAT * cos_lat)
    return (
        center.latitude - lat_delta,
        center.latitude + lat_delta,
        center.longitude - lon_delta,
        center.longitude + lon_delta,
    )
