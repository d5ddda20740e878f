"""
API router for Sentinel-2 NDVI endpoints.
"""
from typing import Annotated, List, Optional

from fastapi import APIRouter, Query, Request, Response

from app.api.dependencies import (
    GeometryNdviServiceDep,
    NdviServiceDep,
    TimeseriesRepositoryDep,
)
from app.api.rate_limit import UPSTREAM_RATE_LIMIT, limiter
from app.api.v1.models.requests import SimpleNdviRequest
from app.api.v1.models.responses import (
    NdviLatestResponse,
    NdviStatsResponse,
    TimeseriesRecordResponse,
    UsedSearch,
)
from app.domain.errors import InvalidRequestError
from app.infrastructure.api_constants import APIConstants
from app.utils.geometry import is_geojson_geometry
from app.utils.validation import parse_object_id


router = APIRouter(
    prefix="/s2",
    tags=["ndvi"],
)

FieldIdQuery = Annotated[str, Query(description="Field id")]
DaysQuery = Annotated[Optional[int], Query(description="Recency window in days (1-120, default 10)")]
CloudQuery = Annotated[Optional[int], Query(description="Maximum cloud cover % (default 70)")]

STAGE_DESCRIPTION = """
    The scene search starts from `days`/`cloud` and, while nothing is found,
    relaxes to (max(20, days*3), max(cloud, 80)) and finally (60, 90).
    `used_search` reports the stage that matched.
"""


def _png(content: bytes) -> Response:
    return Response(
        content=content,
        media_type=APIConstants.CONTENT_TYPE_PNG,
        headers=APIConstants.NO_CACHE_HEADERS,
    )


def _body_geometry(body: SimpleNdviRequest):
    geometry = body.resolve_geometry()
    if not is_geojson_geometry(geometry):
        raise InvalidRequestError("A GeoJSON geometry is required", code="invalid_geometry")
    return geometry


@router.get(
    "/ndvi/latest",
    response_model=NdviLatestResponse,
    summary="NDVI tile template for a field",
    description=STAGE_DESCRIPTION,
    responses={
        404: {"description": "Field not found or no scene in any search stage"},
        429: {"description": "Rate limit exceeded"},
        502: {"description": "STAC search failed"},
    },
)
@limiter.limit(UPSTREAM_RATE_LIMIT)
async def ndvi_latest(
    request: Request,
    ndvi_service: NdviServiceDep,
    field_id: FieldIdQuery,
    days: DaysQuery = None,
    cloud: CloudQuery = None,
) -> NdviLatestResponse:
    overlay = await ndvi_service.field_overlay(field_id, days, cloud)
    scene = overlay.search.scene
    return NdviLatestResponse(
        field_id=field_id,
        datetime=scene.datetime,
        cloud_cover=scene.cloud_cover,
        tile_template=overlay.tile_template,
        preview_url=overlay.preview_url,
        stac_item_url=scene.item_url,
        used_search=UsedSearch.from_result(overlay.search),
    )


@router.get(
    "/ndvi/stats",
    response_model=NdviStatsResponse,
    summary="NDVI zonal statistics for a field",
    description=STAGE_DESCRIPTION + """
    Statistics are null when the statistics service returned nothing usable.
    `interpretation` is a presentation heuristic, not a scientific measure.
""",
    responses={
        404: {"description": "Field not found or no scene in any search stage"},
        429: {"description": "Rate limit exceeded"},
        502: {"description": "STAC search or statistics service failed"},
    },
)
@limiter.limit(UPSTREAM_RATE_LIMIT)
async def ndvi_stats(
    request: Request,
    ndvi_service: NdviServiceDep,
    field_id: FieldIdQuery,
    days: DaysQuery = None,
    cloud: CloudQuery = None,
) -> NdviStatsResponse:
    result = await ndvi_service.field_stats(field_id, days, cloud)
    return NdviStatsResponse.from_result(result, field_id=field_id)


@router.get(
    "/ndvi/timeseries",
    response_model=List[TimeseriesRecordResponse],
    summary="Ingested NDVI records of a field",
)
async def ndvi_timeseries(
    timeseries: TimeseriesRepositoryDep,
    field_id: FieldIdQuery,
    limit: Annotated[int, Query(ge=1, le=APIConstants.MAX_PAGE_SIZE)] = APIConstants.DEFAULT_PAGE_SIZE,
) -> List[TimeseriesRecordResponse]:
    oid = parse_object_id(field_id, code="invalid_field_id")
    docs = await timeseries.list_for_field(oid, limit=limit)
    return [TimeseriesRecordResponse.from_document(doc) for doc in docs]


@router.get(
    "/preview.png",
    summary="NDVI preview image of a field",
    response_class=Response,
    responses={
        200: {"content": {"image/png": {}}},
        429: {"description": "Rate limit exceeded"},
        502: {"description": "Rendering failed"},
    },
)
@limiter.limit(UPSTREAM_RATE_LIMIT)
async def preview_png(
    request: Request,
    ndvi_service: NdviServiceDep,
    field_id: FieldIdQuery,
    days: DaysQuery = None,
    cloud: CloudQuery = None,
    size: Annotated[Optional[int], Query(description="Edge in pixels (256-2048)")] = None,
    item_url: Annotated[Optional[str], Query(description="Use this STAC item")] = None,
) -> Response:
    content = await ndvi_service.field_preview(field_id, days, cloud, size, item_url or None)
    return _png(content)


@router.post(
    "/preview.simple",
    summary="NDVI preview image of a posted geometry",
    response_class=Response,
    responses={200: {"content": {"image/png": {}}}, 429: {"description": "Rate limit exceeded"}},
)
@limiter.limit(UPSTREAM_RATE_LIMIT)
async def preview_simple(
    request: Request,
    body: SimpleNdviRequest,
    ndvi_service: GeometryNdviServiceDep,
) -> Response:
    geometry = _body_geometry(body)
    content = await ndvi_service.preview_for_geometry(
        geometry, body.days, body.cloud, body.size, body.item_url or None
    )
    return _png(content)


@router.post(
    "/stats.simple",
    response_model=NdviStatsResponse,
    summary="NDVI statistics of a posted geometry",
    responses={429: {"description": "Rate limit exceeded"}},
)
@limiter.limit(UPSTREAM_RATE_LIMIT)
async def stats_simple(
    request: Request,
    body: SimpleNdviRequest,
    ndvi_service: GeometryNdviServiceDep,
) -> NdviStatsResponse:
    geometry = _body_geometry(body)
    result = await ndvi_service.stats_for_geometry(
        geometry, body.days, body.cloud, body.item_url or None
    )
    return NdviStatsResponse.from_result(result)
