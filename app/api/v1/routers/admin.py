"""
API router for token-gated maintenance endpoints.
"""
import logging
from typing import Annotated

from fastapi import APIRouter, Path
from pymongo.errors import OperationFailure

from app.api.dependencies import AdminDep, DatabaseDep, IngestServiceDep
from app.api.v1.models.responses import DropCollectionResponse, IngestSummaryResponse
from app.domain.errors import InvalidRequestError

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[AdminDep],
    responses={401: {"description": "Missing or invalid X-Admin-Token"}},
)


@router.delete("/collections/{name}", response_model=DropCollectionResponse, summary="Drop a collection")
async def drop_collection(
    name: Annotated[str, Path(description="Collection name")],
    database: DatabaseDep,
) -> DropCollectionResponse:
    try:
        await database.drop_collection(name)
    except OperationFailure as e:
        raise InvalidRequestError(str(e), code="drop_failed")
    logger.warning(f"Dropped collection {name!r}")
    return DropCollectionResponse(ok=True, dropped=name)


@router.post("/ingest/s2", response_model=IngestSummaryResponse, summary="Run an NDVI ingest sweep")
async def ingest_s2(ingest_service: IngestServiceDep) -> IngestSummaryResponse:
    """Ingest the latest NDVI statistics of every active field and report counts."""
    summary = await ingest_service.ingest_all()
    return IngestSummaryResponse(ok=True, **summary.model_dump())
