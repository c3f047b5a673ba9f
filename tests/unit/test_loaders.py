"""
Unit tests for the load committer
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock
from core.exceptions import CheckpointError, LoadError
from ingestion.connectors.bigquery import LoadJobResult
from ingestion.loaders.bigquery_loader import LoadCommitter
from ingestion.run_state import RunState
from schemas.records import WAREHOUSE_COLUMNS

MAX_TS = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
URIS = ["gs://test-bucket/a.csv", "gs://test-bucket/b.csv"]


@pytest.fixture
def events():
    return []


@pytest.fixture
def warehouse(events):
    warehouse = Mock()
    warehouse.table_id = "ds.tbl"

    def load_append(uris, columns):
        events.append("load")
        return LoadJobResult(job_id="job-1", succeeded=True, output_rows=3)

    warehouse.load_append = Mock(side_effect=load_append)
    return warehouse


@pytest.fixture
def watermark_store(events):
    store = Mock()
    store.write = AsyncMock(side_effect=lambda *args: events.append("watermark"))
    return store


@pytest.fixture
def object_store(events):
    store = Mock()
    store.bucket_name = "test-bucket"

    def delete_objects(uris):
        events.append("delete")
        return [True] * len(uris)

    store.delete_objects = Mock(side_effect=delete_objects)
    return store


@pytest.fixture
def committer(warehouse, watermark_store, object_store):
    return LoadCommitter(warehouse, watermark_store, object_store)


@pytest.fixture
def staged_state():
    state = RunState(job_name="job")
    state.staged_locations = list(URIS)
    state.max_timestamp = MAX_TS
    state.chunks_staged = 2
    return state


class TestLoadCommitter:

    @pytest.mark.asyncio
    async def test_nothing_staged(self, committer, warehouse, watermark_store, object_store):
        result = await committer.commit(RunState(job_name="job"))

        assert result.loaded is False
        warehouse.load_append.assert_not_called()
        watermark_store.write.assert_not_called()
        object_store.delete_objects.assert_not_called()

    @pytest.mark.asyncio
    async def test_commit_order(self, committer, staged_state, events, warehouse, watermark_store):
        result = await committer.commit(staged_state)

        assert events == ["load", "watermark", "delete"]
        warehouse.load_append.assert_called_once_with(URIS, list(WAREHOUSE_COLUMNS))
        watermark_store.write.assert_awaited_once_with("job", MAX_TS)
        assert result.loaded is True
        assert result.job_id == "job-1"
        assert result.output_rows == 3
        assert result.watermark == MAX_TS
        assert (result.deleted_objects, result.undeleted_objects) == (2, 0)

    @pytest.mark.asyncio
    async def test_failed_job_leaves_watermark_and_objects(self, committer, staged_state, events, warehouse):
        warehouse.load_append = Mock(
            return_value=LoadJobResult(job_id="job-2", succeeded=False, error="bad row")
        )

        with pytest.raises(LoadError) as exc_info:
            await committer.commit(staged_state)

        assert exc_info.value.context["job_id"] == "job-2"
        assert exc_info.value.context["staged_objects"] == 2
        assert events == []

    @pytest.mark.asyncio
    async def test_interrupted_wait_leaves_watermark_and_objects(self, committer, staged_state, events, warehouse):
        warehouse.load_append = Mock(side_effect=TimeoutError("load job still running"))

        with pytest.raises(LoadError) as exc_info:
            await committer.commit(staged_state)

        assert isinstance(exc_info.value.original_exception, TimeoutError)
        assert events == []

    @pytest.mark.asyncio
    async def test_checkpoint_failure_skips_cleanup(self, committer, staged_state, events, watermark_store):
        watermark_store.write = AsyncMock(side_effect=CheckpointError("update matched no row"))

        with pytest.raises(CheckpointError):
            await committer.commit(staged_state)

        assert events == ["load"]

    @pytest.mark.asyncio
    async def test_cleanup_failure_is_not_an_error(self, committer, staged_state, object_store, watermark_store):
        object_store.delete_objects = Mock(side_effect=OSError("network down"))

        result = await committer.commit(staged_state)

        assert result.loaded is True
        watermark_store.write.assert_awaited_once()
        assert (result.deleted_objects, result.undeleted_objects) == (0, 2)

    @pytest.mark.asyncio
    async def test_partial_cleanup_counted(self, committer, staged_state, object_store):
        object_store.delete_objects = Mock(return_value=[True, False])

        result = await committer.commit(staged_state)

        assert (result.deleted_objects, result.undeleted_objects) == (1, 1)

    @pytest.mark.asyncio
    async def test_no_change_timestamp_keeps_watermark(self, committer, staged_state, watermark_store):
        staged_state.max_timestamp = None

        result = await committer.commit(staged_state)

        assert result.loaded is True
        assert result.watermark is None
        watermark_store.write.assert_not_called()
