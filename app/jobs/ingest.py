"""
Run one NDVI ingest sweep over all active fields.

Meant for an external scheduler, e.g. a crontab entry::

    0 3 * * *  cd /srv/field-ndvi && python -m app.jobs.ingest
"""
import argparse
import asyncio
import logging
import sys

from app.config import settings
from app.infrastructure.database import MongoDatabase
from app.infrastructure.repositories import FieldRepository, NdviTimeseriesRepository
from app.infrastructure.stac_client import StacClient
from app.infrastructure.titiler_client import TitilerClient
from app.services.application.ingest_service import IngestService
from app.services.application.ndvi_service import NdviService
from app.services.domain.scene_locator import SceneLocator
from app.services.domain.tile_urls import TileUrlBuilder

logger = logging.getLogger("app.jobs.ingest")


async def run(delay_seconds: float) -> int:
    database = MongoDatabase.from_settings(settings)
    try:
        await database.ensure_connected()
        await database.ensure_indexes()
        async with StacClient() as stac_client, TitilerClient() as titiler_client:
            fields = FieldRepository(database)
            ndvi = NdviService(
                fields=fields,
                locator=SceneLocator(stac_client),
                titiler=titiler_client,
                urls=TileUrlBuilder(),
            )
            service = IngestService(
                fields=fields,
                timeseries=NdviTimeseriesRepository(database),
                ndvi=ndvi,
                delay_seconds=delay_seconds,
            )
            summary = await service.ingest_all()
    finally:
        database.close()
    return 1 if summary.failed and not summary.ingested else 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument(
        "--delay",
        type=float,
        default=settings.ingest_delay_seconds,
        help="Seconds to pause between fields",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    return asyncio.run(run(args.delay))


if __name__ == "__main__":
    sys.exit(main())
