"""
API router for field endpoints.
"""
from typing import Annotated, List

from fastapi import APIRouter, Path, Query, Response, status

from app.api.dependencies import FieldServiceDep
from app.api.v1.models.requests import FieldWriteRequest
from app.api.v1.models.responses import FieldResponse
from app.infrastructure.api_constants import APIConstants


router = APIRouter(
    prefix="/fields",
    tags=["fields"],
)

FieldIdPath = Annotated[str, Path(description="Field id (24 hex digits)")]


@router.get("", response_model=List[FieldResponse], summary="List fields")
async def list_fields(
    field_service: FieldServiceDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=APIConstants.MAX_PAGE_SIZE)] = APIConstants.DEFAULT_PAGE_SIZE,
) -> List[FieldResponse]:
    """Non-deleted fields, newest first."""
    records = await field_service.list_fields(page=page, limit=limit)
    return [FieldResponse.from_record(record) for record in records]


@router.get("/{field_id}", response_model=FieldResponse, summary="Get a field")
async def get_field(field_id: FieldIdPath, field_service: FieldServiceDep) -> FieldResponse:
    return FieldResponse.from_record(await field_service.get_field(field_id))


@router.post(
    "",
    response_model=FieldResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a field",
    description="""
    Create a field from a drawn polygon.

    The area is rounded to 2 decimals; when `area_ha` is omitted it is
    computed from the geometry. A crop, if given, starts the crop history
    for `year` (default: current year) and is added to the crop master.
    """,
)
async def create_field(body: FieldWriteRequest, field_service: FieldServiceDep) -> FieldResponse:
    return FieldResponse.from_record(await field_service.create_field(body))


@router.put("/{field_id}", response_model=FieldResponse, summary="Update a field")
async def update_field(
    field_id: FieldIdPath,
    body: FieldWriteRequest,
    field_service: FieldServiceDep,
) -> FieldResponse:
    """Partial update. A crop for an existing year replaces that year's entry."""
    return FieldResponse.from_record(await field_service.update_field(field_id, body))


@router.delete("/{field_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a field")
async def delete_field(
    field_id: FieldIdPath,
    field_service: FieldServiceDep,
    hard: Annotated[bool, Query(description="Remove the document instead of flagging it")] = False,
) -> Response:
    await field_service.delete_field(field_id, hard=hard)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
