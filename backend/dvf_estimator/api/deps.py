from functools import lru_cache

from dvf_estimator.config import settings
from dvf_estimator.estimation.engine import EstimationEngine
from dvf_estimator.estimation.pipeline import build_engine, build_geocoder
from dvf_estimator.tools.geocoding import BanGeocoder


@lru_cache
def get_engine() -> EstimationEngine:
    return build_engine(settings)


@lru_cache
def get_geocoder() -> BanGeocoder:
    return build_geocoder(settings)
