"""
API router for client bootstrap, health and diagnostics.
"""
from datetime import datetime, timezone

from fastapi import APIRouter

from app.api.dependencies import DatabaseDep
from app.api.v1.models.responses import ConfigResponse, DebugDbResponse, HealthResponse
from app.config import settings


router = APIRouter(tags=["system"])


@router.get("/config", response_model=ConfigResponse, summary="Browser client configuration")
async def client_config() -> ConfigResponse:
    return ConfigResponse(
        googleMapsApiKey=settings.google_maps_api_key,
        apiMode="external",
        externalApiBase=settings.external_api_base or f"http://localhost:{settings.port}/api/v1",
    )


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def api_health() -> HealthResponse:
    return HealthResponse(
        ok=True,
        message=f"{settings.app_name} is running",
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.get("/debug/db", response_model=DebugDbResponse, summary="Database name and collections")
async def debug_db(database: DatabaseDep) -> DebugDbResponse:
    return DebugDbResponse(
        mongodb_database=database.name,
        collections=sorted(await database.collection_names()),
    )
