"""
API router combining all endpoints.
"""
from fastapi import APIRouter

from iat_api.api import health, test_results

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(
    test_results.router, prefix="/test-results", tags=["test-results"]
)
