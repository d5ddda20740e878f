"""
Application service: field records and their crop history.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

from bson import ObjectId

from app.config import settings
from app.domain.errors import ConflictError, InvalidRequestError, NotFoundError
from app.domain.models import FieldInput, FieldRecord
from app.infrastructure.api_constants import APIConstants
from app.infrastructure.repositories import CropRepository, FieldRepository, utcnow
from app.utils.geometry import (
    geometry_area_ha,
    geometry_to_feature,
    normalize_field_geometry,
    parse_geometry_json,
    round_half_up,
)
from app.utils.validation import clean_text, parse_object_id

logger = logging.getLogger(__name__)


def merge_crop_history(
    history: List[dict[str, Any]],
    year: int,
    crop: str,
    variety: str = "",
) -> List[dict[str, Any]]:
    """
    Record ``crop`` for ``year``, keeping at most one entry per year.

    An existing entry for the year is overwritten in place (its variety is
    kept when no new one is given); otherwise a new entry is appended.
    """
    merged = [dict(entry) for entry in history]
    for entry in merged:
        if entry.get("year") == year:
            entry["crop"] = crop
            entry["variety"] = variety or entry.get("variety") or ""
            return merged
    merged.append({
        "year": year,
        "crop": crop,
        "variety": variety,
        "planting_date": None,
        "harvest_date": None,
    })
    return merged


def resolve_geometry(payload: FieldInput) -> Optional[dict[str, Any]]:
    """
    Extract and validate the geometry of a write payload.

    Returns:
        Normalized geometry, or None when the payload carries none

    Raises:
        InvalidRequestError: If the geometry is present but unusable
    """
    if payload.geometry is not None:
        raw = payload.geometry
    elif payload.geometry_json:
        try:
            raw = parse_geometry_json(payload.geometry_json)
        except ValueError as e:
            raise InvalidRequestError(str(e), code="invalid_geometry_json")
    else:
        return None

    try:
        return normalize_field_geometry(raw)
    except ValueError as e:
        raise InvalidRequestError(str(e), code="invalid_geometry")


class FieldService:
    """
    Application service for field CRUD.

    Every write that names a crop also upserts the crop master list.
    """

    def __init__(
        self,
        fields: FieldRepository,
        crops: CropRepository,
        hard_delete: bool = settings.hard_delete,
    ):
        self.fields = fields
        self.crops = crops
        self.hard_delete_default = hard_delete

    async def list_fields(self, page: int = 1, limit: int = 100) -> List[FieldRecord]:
        page = max(1, page)
        docs = await self.fields.list_active(skip=(page - 1) * limit, limit=limit)
        return [FieldRecord.from_document(doc) for doc in docs]

    async def get_field(self, field_id: str, code: str = "invalid_id") -> FieldRecord:
        oid = parse_object_id(field_id, code=code)
        doc = await self.fields.get(oid)
        if doc is None:
            raise NotFoundError(f"Field {field_id} not found", code="field_not_found")
        return FieldRecord.from_document(doc)

    async def create_field(self, payload: FieldInput) -> FieldRecord:
        """
        Create a field.

        Raises:
            InvalidRequestError: If the geometry is missing or invalid
        """
        geometry = resolve_geometry(payload)
        if geometry is None:
            raise InvalidRequestError("geometry_json is required", code="geometry_required")

        crop = clean_text(payload.crop)
        variety = clean_text(payload.variety)
        year = payload.year or datetime.now(timezone.utc).year
        if payload.area_ha is not None:
            area_ha = round_half_up(payload.area_ha, 2)
        else:
            area_ha = geometry_area_ha(geometry)

        now = utcnow()
        document: dict[str, Any] = {
            "name": payload.name or "",
            "memo": payload.memo or "",
            "area_ha": area_ha,
            "geometry": geometry,
            "geometry_json": json.dumps(geometry_to_feature(geometry)),
            "crop_history": merge_crop_history([], year, crop, variety) if crop else [],
            "current_crop": crop,
            "current_year": year,
            "created_at": now,
            "updated_at": now,
            "deleted": False,
        }
        document["_id"] = await self.fields.insert(document)
        logger.info(f"Created field {document['_id']} ({area_ha} ha)")

        if crop:
            await self.crops.upsert_master(crop, variety)
        return FieldRecord.from_document(document)

    async def update_field(self, field_id: str, payload: FieldInput) -> FieldRecord:
        """
        Apply a partial update.

        Raises:
            InvalidRequestError: On a bad id or geometry
            NotFoundError: If the field does not exist
            ConflictError: If a crop update keeps racing other writers
        """
        oid = parse_object_id(field_id)
        geometry = resolve_geometry(payload)

        changes: dict[str, Any] = {"updated_at": utcnow()}
        if payload.name is not None:
            changes["name"] = payload.name
        if payload.memo is not None:
            changes["memo"] = payload.memo
        if geometry is not None:
            changes["geometry"] = geometry
            changes["geometry_json"] = json.dumps(geometry_to_feature(geometry))
        if payload.area_ha is not None:
            changes["area_ha"] = round_half_up(payload.area_ha, 2)
        elif geometry is not None:
            changes["area_ha"] = geometry_area_ha(geometry)

        crop: Optional[str] = None
        variety = clean_text(payload.variety)
        if payload.crop is None:
            updated = await self.fields.update(oid, changes)
        else:
            crop = clean_text(payload.crop)
            year = payload.year or datetime.now(timezone.utc).year
            changes["current_crop"] = crop
            changes["current_year"] = year
            updated = await self._write_crop_history(oid, changes, year, crop, variety)

        if not updated:
            raise NotFoundError(f"Field {field_id} not found", code="field_not_found")

        if crop:
            await self.crops.upsert_master(crop, variety)

        doc = await self.fields.get(oid, include_deleted=True)
        return FieldRecord.from_document(doc)

    async def _write_crop_history(
        self,
        oid: ObjectId,
        changes: dict[str, Any],
        year: int,
        crop: str,
        variety: str,
    ) -> bool:
        """
        Merge the crop into the stored history and write it with ``changes``.

        The write only lands if ``updated_at`` is unchanged since the read; a
        concurrent update forces a fresh read and merge.

        Returns:
            False if the field does not exist

        Raises:
            ConflictError: If the field kept changing across every attempt
        """
        for _ in range(APIConstants.CROP_HISTORY_WRITE_ATTEMPTS):
            existing = await self.fields.get(oid, include_deleted=True)
            if existing is None:
                return False
            changes["crop_history"] = merge_crop_history(
                existing.get("crop_history") or [], year, crop, variety
            )
            if await self.fields.update(oid, changes, match={"updated_at": existing.get("updated_at")}):
                return True
            logger.info(f"Field {oid} changed during crop update, merging again")

        raise ConflictError(
            f"Field {oid} is being updated concurrently",
            code="concurrent_update",
        )

    async def delete_field(self, field_id: str, hard: bool = False) -> None:
        """Soft-delete a field, or remove it when ``hard`` (or configured)."""
        oid = parse_object_id(field_id)
        if hard or self.hard_delete_default:
            removed = await self.fields.hard_delete(oid)
        else:
            removed = await self.fields.soft_delete(oid)
        if not removed:
            raise NotFoundError(f"Field {field_id} not found", code="field_not_found")
        logger.info(f"Deleted field {field_id} (hard={hard or self.hard_delete_default})")
