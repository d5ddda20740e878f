"""
Write the latest NDVI record of every field as CSV and Markdown.
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

from app.config import settings
from app.infrastructure.database import MongoDatabase
from app.infrastructure.repositories import NdviTimeseriesRepository
from app.services.application.report_service import ReportService


async def run(out_dir: Path) -> None:
    database = MongoDatabase.from_settings(settings)
    try:
        await database.ensure_connected()
        service = ReportService(NdviTimeseriesRepository(database))
        for path in await service.write_reports(out_dir):
            print(path)
    finally:
        database.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.strip())
    parser.add_argument("--out", type=Path, default=Path("reports"), help="Output directory")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run(args.out))
    return 0


if __name__ == "__main__":
    sys.exit(main())
