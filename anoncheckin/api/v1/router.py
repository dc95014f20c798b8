"""Main API router for v1."""
from fastapi import APIRouter

from anoncheckin.api.v1.endpoints import meetings, network

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(meetings.router, prefix="/meetings", tags=["Meetings"])
api_router.include_router(network.router, prefix="/network", tags=["Network"])
