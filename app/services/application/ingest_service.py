"""
Application service: batch NDVI ingestion into the time-series collection.
"""
import asyncio
import copy
import logging
from typing import Any

from pymongo.errors import DuplicateKeyError

from app.config import settings
from app.domain.models import IngestOutcome, IngestSummary
from app.infrastructure.repositories import FieldRepository, NdviTimeseriesRepository, utcnow
from app.services.application.ndvi_service import NdviService
from app.utils.validation import parse_stac_datetime

logger = logging.getLogger(__name__)


class IngestService:
    """
    Ingests the latest NDVI statistics of every active field.

    A (field, STAC item) pair is stored at most once. The sweep runs fields
    one after another with a pause in between to spare the upstream services.
    """

    def __init__(
        self,
        fields: FieldRepository,
        timeseries: NdviTimeseriesRepository,
        ndvi: NdviService,
        delay_seconds: float = settings.ingest_delay_seconds,
        days: int = settings.ndvi_default_days,
        cloud: int = settings.ndvi_default_cloud,
    ):
        self.fields = fields
        self.timeseries = timeseries
        self.ndvi = ndvi
        self.delay_seconds = delay_seconds
        self.days = days
        self.cloud = cloud

    async def ingest_field(self, field: dict[str, Any]) -> IngestOutcome:
        geometry = field.get("geometry")
        if not geometry:
            return IngestOutcome(status="skipped", reason="no_geometry")

        search = await self.ndvi.locator.find_latest_scene(geometry, self.days, self.cloud)
        if search is None:
            return IngestOutcome(status="skipped", reason="no_scene_found")

        scene = search.scene
        if await self.timeseries.exists(field["_id"], scene.item_id):
            return IngestOutcome(status="skipped", reason="already_ingested", stac_item_id=scene.item_id)

        statistics = await self.ndvi.compute_stats(scene.item_url, geometry)
        if statistics is None:
            # one more try on the same scene with a freshly serialized geometry
            statistics = await self.ndvi.compute_stats(scene.item_url, copy.deepcopy(geometry))
        if statistics is None:
            return IngestOutcome(status="failed", reason="stats_null", stac_item_id=scene.item_id)

        document = {
            "field_id": field["_id"],
            "stac_item_id": scene.item_id,
            "stac_item_url": scene.item_url,
            "datetime": parse_stac_datetime(scene.datetime) or utcnow(),
            "cloud_cover": scene.cloud_cover,
            "search_stage": search.stage,
            "ndvi": {
                "min": statistics.min,
                "max": statistics.max,
                "mean": statistics.mean,
                "median": statistics.median,
                "std": statistics.std,
                "histogram": statistics.histogram,
                "valid_pixels": statistics.count,
            },
            "created_at": utcnow(),
        }
        try:
            await self.timeseries.insert(document)
        except DuplicateKeyError:
            return IngestOutcome(status="skipped", reason="already_ingested", stac_item_id=scene.item_id)
        return IngestOutcome(status="ingested", stac_item_id=scene.item_id)

    async def ingest_all(self) -> IngestSummary:
        """Run one sweep over all non-deleted fields."""
        fields = await self.fields.list_active()
        summary = IngestSummary(total=len(fields))

        for position, field in enumerate(fields):
            label = field.get("name") or field["_id"]
            try:
                outcome = await self.ingest_field(field)
            except Exception as e:
                summary.failed += 1
                logger.error(f"[ingest] {label} failed: {e}")
            else:
                if outcome.status == "ingested":
                    summary.ingested += 1
                elif outcome.status == "skipped":
                    summary.skipped += 1
                else:
                    summary.failed += 1
                logger.info(f"[ingest] {label}: {outcome.status} {outcome.reason or ''}".rstrip())

            if self.delay_seconds and position < len(fields) - 1:
                await asyncio.sleep(self.delay_seconds)

        logger.info(
            f"[ingest] done. ingested={summary.ingested}, "
            f"skipped={summary.skipped}, failed={summary.failed}"
        )
        return summary
