"""
Unit tests for the NDVI ingest sweep and the latest-NDVI reports.

Upstream clients are mocked; persistence runs on mongomock-motor.
"""
import pytest
from unittest.mock import AsyncMock

from app.domain.errors import UpstreamError
from app.infrastructure.repositories import FieldRepository, NdviTimeseriesRepository, utcnow
from app.services.application.ingest_service import IngestService
from app.services.application.ndvi_service import NdviService
from app.services.application.report_service import (
    COLUMNS,
    ReportService,
    to_csv,
    to_markdown,
    to_row,
)
from app.services.domain.scene_locator import SceneLocator


@pytest.fixture
def field_repository(database) -> FieldRepository:
    return FieldRepository(database)


@pytest.fixture
def timeseries_repository(database) -> NdviTimeseriesRepository:
    return NdviTimeseriesRepository(database)


@pytest.fixture
def ingest_service(
    field_repository, timeseries_repository, mock_stac_client, mock_titiler_client, url_builder
) -> IngestService:
    ndvi = NdviService(field_repository, SceneLocator(mock_stac_client), mock_titiler_client, url_builder)
    return IngestService(field_repository, timeseries_repository, ndvi, delay_seconds=0)


async def add_field(repository: FieldRepository, name: str, geometry) -> dict:
    document = {"name": name, "geometry": geometry, "created_at": utcnow(), "deleted": False}
    document["_id"] = await repository.insert(document)
    return document


# ============================================================
# Single Field Tests
# ============================================================

class TestIngestField:
    """Tests for IngestService.ingest_field."""

    @pytest.mark.asyncio
    async def test_stores_record(self, ingest_service, field_repository, timeseries_repository, sample_geometry):
        field = await add_field(field_repository, "North", sample_geometry)

        outcome = await ingest_service.ingest_field(field)

        assert outcome.status == "ingested"
        assert outcome.stac_item_id == "S2B_54SUE_20240601_0_L2A"

        records = await timeseries_repository.list_for_field(field["_id"])
        assert len(records) == 1
        record = records[0]
        assert record["search_stage"] == 1
        assert record["cloud_cover"] == 12.4
        assert record["ndvi"]["mean"] == 0.45
        assert record["ndvi"]["valid_pixels"] == 500

    @pytest.mark.asyncio
    async def test_same_scene_is_not_stored_twice(self, ingest_service, field_repository, timeseries_repository, sample_geometry):
        field = await add_field(field_repository, "North", sample_geometry)

        await ingest_service.ingest_field(field)
        outcome = await ingest_service.ingest_field(field)

        assert outcome.status == "skipped"
        assert outcome.reason == "already_ingested"
        assert len(await timeseries_repository.list_for_field(field["_id"])) == 1

    @pytest.mark.asyncio
    async def test_field_without_geometry(self, ingest_service, mock_stac_client):
        outcome = await ingest_service.ingest_field({"_id": "x", "name": "empty"})

        assert (outcome.status, outcome.reason) == ("skipped", "no_geometry")
        mock_stac_client.search_latest.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_scene(self, ingest_service, field_repository, mock_stac_client, sample_geometry):
        mock_stac_client.search_latest.return_value = None
        field = await add_field(field_repository, "North", sample_geometry)

        outcome = await ingest_service.ingest_field(field)

        assert (outcome.status, outcome.reason) == ("skipped", "no_scene_found")
        assert mock_stac_client.search_latest.await_count == 3

    @pytest.mark.asyncio
    async def test_unusable_statistics_retried_once(self, ingest_service, field_repository, mock_titiler_client, sample_geometry):
        mock_titiler_client.fetch_statistics.return_value = {"detail": "no data"}
        field = await add_field(field_repository, "North", sample_geometry)

        outcome = await ingest_service.ingest_field(field)

        assert (outcome.status, outcome.reason) == ("failed", "stats_null")
        assert mock_titiler_client.fetch_statistics.await_count == 2

    @pytest.mark.asyncio
    async def test_retry_can_succeed(self, ingest_service, field_repository, mock_titiler_client, sample_geometry, sample_stats_payload):
        mock_titiler_client.fetch_statistics.side_effect = [{}, sample_stats_payload]
        field = await add_field(field_repository, "North", sample_geometry)

        outcome = await ingest_service.ingest_field(field)

        assert outcome.status == "ingested"


# ============================================================
# Sweep Tests
# ============================================================

class TestIngestAll:
    """Tests for IngestService.ingest_all."""

    @pytest.mark.asyncio
    async def test_summary_counts(self, ingest_service, field_repository, sample_geometry):
        await add_field(field_repository, "North", sample_geometry)
        await add_field(field_repository, "South", None)

        summary = await ingest_service.ingest_all()

        assert summary.total == 2
        assert summary.ingested == 1
        assert summary.skipped == 1
        assert summary.failed == 0

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_sweep(self, ingest_service, field_repository, mock_stac_client, sample_geometry):
        scene = mock_stac_client.search_latest.return_value
        mock_stac_client.search_latest.side_effect = [
            UpstreamError("STAC search failed", code="stac_search_failed"),
            scene,
        ]
        await add_field(field_repository, "North", sample_geometry)
        await add_field(field_repository, "South", sample_geometry)

        summary = await ingest_service.ingest_all()

        assert (summary.ingested, summary.failed, summary.total) == (1, 1, 2)

    @pytest.mark.asyncio
    async def test_deleted_fields_are_ignored(self, ingest_service, field_repository, sample_geometry):
        field = await add_field(field_repository, "North", sample_geometry)
        await field_repository.soft_delete(field["_id"])

        summary = await ingest_service.ingest_all()

        assert summary.total == 0

    @pytest.mark.asyncio
    async def test_pause_between_fields(self, ingest_service, field_repository, sample_geometry, monkeypatch):
        sleep = AsyncMock()
        monkeypatch.setattr("app.services.application.ingest_service.asyncio.sleep", sleep)
        ingest_service.delay_seconds = 0.5
        for name in ("A", "B", "C"):
            await add_field(field_repository, name, sample_geometry)

        await ingest_service.ingest_all()

        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.5)


# ============================================================
# Report Tests
# ============================================================

class TestReports:
    """Tests for the latest-NDVI report builders."""

    def test_to_row_formats_numbers(self):
        row = to_row({
            "field_id": "f1",
            "stac_item_id": "S2A_X",
            "cloud_cover": 12.44,
            "ndvi": {"mean": 0.45678, "min": None, "valid_pixels": 500},
        })

        assert row["mean"] == "0.457"
        assert row["min"] == ""
        assert row["cloud_cover"] == "12.4"
        assert row["valid_pixels"] == "500"

    def test_csv_and_markdown_headers(self):
        rows = [to_row({"field_id": "f1", "ndvi": {"mean": 0.5}})]

        assert to_csv(rows).splitlines()[0] == ",".join(COLUMNS)
        markdown = to_markdown(rows).splitlines()
        assert markdown[0] == "| " + " | ".join(COLUMNS) + " |"
        assert len(markdown) == 3

    @pytest.mark.asyncio
    async def test_latest_row_per_field(self, ingest_service, field_repository, timeseries_repository, sample_geometry, tmp_path):
        field = await add_field(field_repository, "North", sample_geometry)
        await ingest_service.ingest_field(field)

        paths = await ReportService(timeseries_repository).write_reports(tmp_path)

        assert [path.name for path in paths] == ["ndvi_latest.csv", "ndvi_latest.md"]
        lines = paths[0].read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert str(field["_id"]) in lines[1]
        assert "0.450" in lines[1]


# ============================================================
# Command Line Job Tests
# ============================================================

class TestJobs:
    """Tests for the command line entry points."""

    def test_ingest_job_passes_delay(self, monkeypatch):
        from app.jobs import ingest as ingest_job

        run = AsyncMock(return_value=0)
        monkeypatch.setattr(ingest_job, "run", run)

        assert ingest_job.main(["--delay", "0"]) == 0
        run.assert_awaited_once_with(0.0)

    def test_ingest_job_exit_code(self, monkeypatch):
        from app.jobs import ingest as ingest_job

        monkeypatch.setattr(ingest_job, "run", AsyncMock(return_value=1))

        assert ingest_job.main([]) == 1

    def test_report_job_output_directory(self, monkeypatch, tmp_path):
        from app.jobs import report as report_job

        run = AsyncMock(return_value=None)
        monkeypatch.setattr(report_job, "run", run)

        assert report_job.main(["--out", str(tmp_path)]) == 0
        run.assert_awaited_once_with(tmp_path)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
