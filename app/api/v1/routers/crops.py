"""
API router for the crop master list.
"""
from typing import Annotated, List

from fastapi import APIRouter, Path, Query, Response, status

from app.api.dependencies import CropServiceDep
from app.api.v1.models.requests import CropWriteRequest
from app.api.v1.models.responses import CropResponse
from app.infrastructure.api_constants import APIConstants


router = APIRouter(
    prefix="/crops",
    tags=["crops"],
)


@router.get("", response_model=List[CropResponse], summary="Search crops")
async def list_crops(
    crop_service: CropServiceDep,
    q: Annotated[str, Query(description="Case-insensitive substring of the name")] = "",
    limit: Annotated[int, Query(ge=1)] = APIConstants.DEFAULT_CROP_LIMIT,
) -> List[CropResponse]:
    records = await crop_service.list_crops(q=q, limit=limit)
    return [CropResponse(**record.model_dump()) for record in records]


@router.post(
    "",
    response_model=CropResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a crop",
    responses={409: {"description": "A crop with this name already exists"}},
)
async def create_crop(body: CropWriteRequest, crop_service: CropServiceDep) -> CropResponse:
    record = await crop_service.create_crop(body.name, body.varieties)
    return CropResponse(**record.model_dump())


@router.put("/{crop_id}", response_model=CropResponse, summary="Update a crop")
async def update_crop(
    crop_id: Annotated[str, Path()],
    body: CropWriteRequest,
    crop_service: CropServiceDep,
) -> CropResponse:
    record = await crop_service.update_crop(crop_id, name=body.name, varieties=body.varieties)
    return CropResponse(**record.model_dump())


@router.delete("/{crop_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a crop")
async def delete_crop(
    crop_id: Annotated[str, Path()],
    crop_service: CropServiceDep,
    hard: Annotated[bool, Query()] = False,
) -> Response:
    await crop_service.delete_crop(crop_id, hard=hard)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
