"""
Application service: crop master list.
"""
import logging
from typing import Any, List, Optional

from app.config import settings
from app.domain.errors import ConflictError, InvalidRequestError, NotFoundError
from app.domain.models import CropRecord
from app.infrastructure.api_constants import APIConstants
from app.infrastructure.repositories import CropRepository, utcnow
from app.utils.validation import clean_text, clean_varieties, parse_object_id

logger = logging.getLogger(__name__)


class CropService:
    """CRUD over the crop master list."""

    def __init__(self, crops: CropRepository, hard_delete: bool = settings.hard_delete):
        self.crops = crops
        self.hard_delete_default = hard_delete

    async def list_crops(self, q: str = "", limit: int = APIConstants.DEFAULT_CROP_LIMIT) -> List[CropRecord]:
        limit = max(1, min(limit, APIConstants.MAX_PAGE_SIZE))
        docs = await self.crops.search(clean_text(q), limit)
        return [CropRecord.from_document(doc) for doc in docs]

    async def create_crop(self, name: Optional[str], varieties: Optional[list[Any]] = None) -> CropRecord:
        """
        Create a crop.

        Raises:
            InvalidRequestError: If the name is empty
            ConflictError: If a non-deleted crop already has this name
        """
        crop_name = clean_text(name)
        if not crop_name:
            raise InvalidRequestError("name is required", code="name_required")

        existing = await self.crops.find_active_by_name(crop_name)
        if existing is not None:
            raise ConflictError(
                f"Crop {crop_name!r} already exists",
                code="duplicate",
                id=str(existing["_id"]),
            )

        now = utcnow()
        document: dict[str, Any] = {
            "name": crop_name,
            "varieties": clean_varieties(varieties),
            "created_at": now,
            "updated_at": now,
            "deleted": False,
        }
        document["_id"] = await self.crops.insert(document)
        logger.info(f"Created crop {crop_name!r}")
        return CropRecord.from_document(document)

    async def update_crop(
        self,
        crop_id: str,
        name: Optional[str] = None,
        varieties: Optional[list[Any]] = None,
    ) -> CropRecord:
        """
        Rename a crop and/or replace its varieties.

        Raises:
            InvalidRequestError: If the new name is empty
            ConflictError: If another non-deleted crop already has the new name
            NotFoundError: If the crop does not exist
        """
        oid = parse_object_id(crop_id)
        changes: dict[str, Any] = {"updated_at": utcnow()}
        if name is not None:
            crop_name = clean_text(name)
            if not crop_name:
                raise InvalidRequestError("name is required", code="name_required")
            existing = await self.crops.find_active_by_name(crop_name)
            if existing is not None and existing["_id"] != oid:
                raise ConflictError(
                    f"Crop {crop_name!r} already exists",
                    code="duplicate",
                    id=str(existing["_id"]),
                )
            changes["name"] = crop_name
        if varieties is not None:
            changes["varieties"] = clean_varieties(varieties)

        if not await self.crops.update(oid, changes):
            raise NotFoundError(f"Crop {crop_id} not found")
        return CropRecord.from_document(await self.crops.get(oid))

    async def delete_crop(self, crop_id: str, hard: bool = False) -> None:
        oid = parse_object_id(crop_id)
        if hard or self.hard_delete_default:
            removed = await self.crops.hard_delete(oid)
        else:
            removed = await self.crops.soft_delete(oid)
        if not removed:
            raise NotFoundError(f"Crop {crop_id} not found")
