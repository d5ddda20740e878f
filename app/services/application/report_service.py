"""
Application service: latest-NDVI-per-field reports (CSV and Markdown).
"""
import csv
import io
import logging
from pathlib import Path
from typing import Any, List, Optional

from app.infrastructure.repositories import NdviTimeseriesRepository

logger = logging.getLogger(__name__)

COLUMNS = [
    "field_id", "datetime", "cloud_cover", "mean", "median",
    "min", "max", "std", "valid_pixels", "stac_item_id",
]
STAT_COLUMNS = ("mean", "median", "min", "max", "std")


def format_number(value: Optional[Any], digits: int = 3) -> str:
    if value is None:
        return ""
    try:
        return f"{float(value):.{digits}f}"
    except (TypeError, ValueError):
        return ""


def to_row(record: dict[str, Any]) -> dict[str, str]:
    ndvi = record.get("ndvi") or {}
    moment = record.get("datetime")
    row = {
        "field_id": str(record.get("field_id", "")),
        "datetime": moment.isoformat() if hasattr(moment, "isoformat") else str(moment or ""),
        "cloud_cover": format_number(record.get("cloud_cover"), 1),
        "valid_pixels": "" if ndvi.get("valid_pixels") is None else str(ndvi["valid_pixels"]),
        "stac_item_id": str(record.get("stac_item_id", "")),
    }
    for column in STAT_COLUMNS:
        row[column] = format_number(ndvi.get(column))
    return row


def to_csv(rows: List[dict[str, str]]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=COLUMNS, lineterminator="\n")
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue()


def to_markdown(rows: List[dict[str, str]]) -> str:
    lines = [
        "| " + " | ".join(COLUMNS) + " |",
        "|" + "|".join("---" for _ in COLUMNS) + "|",
    ]
    for row in rows:
        lines.append("| " + " | ".join(row[column] for column in COLUMNS) + " |")
    return "\n".join(lines) + "\n"


class ReportService:
    """Builds reports from the newest ingested record of each field."""

    def __init__(self, timeseries: NdviTimeseriesRepository):
        self.timeseries = timeseries

    async def latest_rows(self) -> List[dict[str, str]]:
        return [to_row(record) for record in await self.timeseries.latest_per_field()]

    async def write_reports(self, out_dir: Path) -> List[Path]:
        rows = await self.latest_rows()
        out_dir.mkdir(parents=True, exist_ok=True)
        csv_path = out_dir / "ndvi_latest.csv"
        md_path = out_dir / "ndvi_latest.md"
        csv_path.write_text(to_csv(rows), encoding="utf-8")
        md_path.write_text(to_markdown(rows), encoding="utf-8")
        logger.info(f"Wrote NDVI report for {len(rows)} fields to {out_dir}")
        return [csv_path, md_path]
