"""
Dependency injection for FastAPI.

Long-lived resources (database handle, HTTP clients) are created once in the
application lifespan and read from ``app.state``; everything else is built
per request from them.
"""
import hmac
from typing import Annotated, Optional

from fastapi import Depends, Header, Request

from app.config import settings
from app.domain.errors import UnauthorizedError
from app.infrastructure.database import MongoDatabase
from app.infrastructure.repositories import (
    CropRepository,
    FieldRepository,
    NdviTimeseriesRepository,
)
from app.infrastructure.stac_client import StacClient
from app.infrastructure.titiler_client import TitilerClient
from app.services.application.crop_service import CropService
from app.services.application.field_service import FieldService
from app.services.application.ingest_service import IngestService
from app.services.application.ndvi_service import NdviService
from app.services.domain.scene_locator import SceneLocator
from app.services.domain.tile_urls import TileUrlBuilder


async def get_database(request: Request) -> MongoDatabase:
    """
    Shared database handle, connected on first use.

    Returns:
        MongoDatabase instance
    """
    database: MongoDatabase = request.app.state.database
    await database.ensure_connected()
    return database


def get_stac_client(request: Request) -> StacClient:
    return request.app.state.stac_client


def get_titiler_client(request: Request) -> TitilerClient:
    return request.app.state.titiler_client


def get_tile_url_builder() -> TileUrlBuilder:
    return TileUrlBuilder()


DatabaseDep = Annotated[MongoDatabase, Depends(get_database)]


def get_field_repository(database: DatabaseDep) -> FieldRepository:
    return FieldRepository(database)


def get_crop_repository(database: DatabaseDep) -> CropRepository:
    return CropRepository(database)


def get_timeseries_repository(database: DatabaseDep) -> NdviTimeseriesRepository:
    return NdviTimeseriesRepository(database)


def get_field_service(
    fields: Annotated[FieldRepository, Depends(get_field_repository)],
    crops: Annotated[CropRepository, Depends(get_crop_repository)],
) -> FieldService:
    """
    Dependency factory for FieldService.

    Args:
        fields: Field repository (injected)
        crops: Crop repository (injected)

    Returns:
        FieldService instance
    """
    return FieldService(fields=fields, crops=crops)


def get_crop_service(
    crops: Annotated[CropRepository, Depends(get_crop_repository)],
) -> CropService:
    return CropService(crops=crops)


def get_scene_locator(
    stac_client: Annotated[StacClient, Depends(get_stac_client)],
) -> SceneLocator:
    return SceneLocator(stac_client)


def _build_ndvi_service(
    fields: Optional[FieldRepository],
    locator: SceneLocator,
    titiler: TitilerClient,
    urls: TileUrlBuilder,
) -> NdviService:
    return NdviService(fields=fields, locator=locator, titiler=titiler, urls=urls)


def get_ndvi_service(
    fields: Annotated[FieldRepository, Depends(get_field_repository)],
    locator: Annotated[SceneLocator, Depends(get_scene_locator)],
    titiler: Annotated[TitilerClient, Depends(get_titiler_client)],
    urls: Annotated[TileUrlBuilder, Depends(get_tile_url_builder)],
) -> NdviService:
    """
    Dependency factory for NdviService bound to stored fields.

    Returns:
        NdviService instance
    """
    return _build_ndvi_service(fields, locator, titiler, urls)


def get_geometry_ndvi_service(
    locator: Annotated[SceneLocator, Depends(get_scene_locator)],
    titiler: Annotated[TitilerClient, Depends(get_titiler_client)],
    urls: Annotated[TileUrlBuilder, Depends(get_tile_url_builder)],
) -> NdviService:
    """NdviService for request-supplied geometries; needs no database."""
    return _build_ndvi_service(None, locator, titiler, urls)


def get_ingest_service(
    fields: Annotated[FieldRepository, Depends(get_field_repository)],
    timeseries: Annotated[NdviTimeseriesRepository, Depends(get_timeseries_repository)],
    ndvi: Annotated[NdviService, Depends(get_ndvi_service)],
) -> IngestService:
    return IngestService(fields=fields, timeseries=timeseries, ndvi=ndvi)


def require_admin_token(
    x_admin_token: Annotated[Optional[str], Header()] = None,
) -> None:
    """
    Check the shared admin token.

    Raises:
        UnauthorizedError: If no token is configured or it does not match
    """
    required = settings.admin_token
    if not required or not hmac.compare_digest((x_admin_token or "").encode(), required.encode()):
        raise UnauthorizedError("Missing or invalid X-Admin-Token", code="unauthorized")


# Type aliases for cleaner route signatures
FieldServiceDep = Annotated[FieldService, Depends(get_field_service)]
CropServiceDep = Annotated[CropService, Depends(get_crop_service)]
NdviServiceDep = Annotated[NdviService, Depends(get_ndvi_service)]
GeometryNdviServiceDep = Annotated[NdviService, Depends(get_geometry_ndvi_service)]
IngestServiceDep = Annotated[IngestService, Depends(get_ingest_service)]
TimeseriesRepositoryDep = Annotated[NdviTimeseriesRepository, Depends(get_timeseries_repository)]
AdminDep = Depends(require_admin_token)
