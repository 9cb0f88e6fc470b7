from fastapi import APIRouter

from dvf_estimator.api.v1 import estimate, health

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(estimate.router, tags=["estimation"])
