"""Tests for the funnel store with mocked Supabase."""

import time
from unittest.mock import MagicMock, patch

import pytest

from app.db.funnel_store import FunnelStore, FunnelStoreError
from tests.fixtures_funnel import (
    ANGLE_BUSYWORK,
    HOOK_MORNINGS,
    PD_NO_TIME,
    PROJECT_ID,
    funnel_rows,
    project_row,
)


@pytest.fixture
def mock_supabase():
    """Fixture to mock Supabase client."""
    with patch("app.db.funnel_store.get_supabase") as mock_get_supabase:
        mock_client = MagicMock()
        mock_get_supabase.return_value = mock_client
        yield mock_client


def _table_mock(rows):
    """Table mock answering both eq() and in_() selects with the given rows."""
    table = MagicMock()
    result = MagicMock(data=rows)
    table.select.return_value.eq.return_value.order.return_value.execute.return_value = result
    table.select.return_value.in_.return_value.order.return_value.execute.return_value = result
    return table


class TestFetch:
    @pytest.mark.asyncio
    async def test_fetch_project(self, mock_supabase):
        query = mock_supabase.table.return_value.select.return_value.eq.return_value.limit.return_value
        query.execute.return_value = MagicMock(data=[project_row()])

        row = await FunnelStore(timeout=5).fetch_project(PROJECT_ID)

        assert row["name"] == "Morning Routine App"
        mock_supabase.table.assert_called_with("projects")
        mock_supabase.table.return_value.select.return_value.eq.assert_called_with("id", PROJECT_ID)

    @pytest.mark.asyncio
    async def test_fetch_missing_project(self, mock_supabase):
        query = mock_supabase.table.return_value.select.return_value.eq.return_value.limit.return_value
        query.execute.return_value = MagicMock(data=[])

        assert await FunnelStore(timeout=5).fetch_project(PROJECT_ID) is None

    @pytest.mark.asyncio
    async def test_fetch_funnel_rows_reads_children_by_parent_ids(self, mock_supabase):
        rows = funnel_rows()
        tables = {name: _table_mock(table_rows) for name, table_rows in rows.items()}
        mock_supabase.table.side_effect = lambda name: tables[name]

        result = await FunnelStore(timeout=5).fetch_funnel_rows(PROJECT_ID)

        assert result == rows
        tables["audiences"].select.return_value.eq.assert_called_with("project_id", PROJECT_ID)
        tables["pain_desire_audiences"].select.return_value.in_.assert_called_with(
            "pain_desire_id", [PD_NO_TIME]
        )
        tables["hooks"].select.return_value.in_.assert_called_with("messaging_angle_id", [ANGLE_BUSYWORK])
        tables["format_executions"].select.return_value.in_.assert_called_with("hook_id", [HOOK_MORNINGS])

    @pytest.mark.asyncio
    async def test_empty_project_skips_child_queries(self, mock_supabase):
        tables = {
            name: _table_mock([])
            for name in (
                "audiences",
                "pain_desires",
                "pain_desire_audiences",
                "messaging_angles",
                "hooks",
                "format_executions",
            )
        }
        mock_supabase.table.side_effect = lambda name: tables[name]

        result = await FunnelStore(timeout=5).fetch_funnel_rows(PROJECT_ID)

        assert all(rows == [] for rows in result.values())
        tables["pain_desire_audiences"].select.assert_not_called()
        tables["hooks"].select.assert_not_called()
        tables["format_executions"].select.assert_not_called()


class TestWrites:
    @pytest.mark.asyncio
    async def test_insert_row_returns_stored_row(self, mock_supabase):
        stored = {"id": "srv-1", "name": "Founders", "sort_order": 0}
        mock_supabase.table.return_value.insert.return_value.execute.return_value = MagicMock(data=[stored])

        row = await FunnelStore(timeout=5).insert_row("audiences", {"name": "Founders", "sort_order": 0})

        assert row == stored
        mock_supabase.table.assert_called_with("audiences")
        mock_supabase.table.return_value.insert.assert_called_once_with({"name": "Founders", "sort_order": 0})

    @pytest.mark.asyncio
    async def test_insert_row_without_data_fails(self, mock_supabase):
        mock_supabase.table.return_value.insert.return_value.execute.return_value = MagicMock(data=[])

        with pytest.raises(FunnelStoreError):
            await FunnelStore(timeout=5).insert_row("audiences", {"name": "Founders"})

    @pytest.mark.asyncio
    async def test_insert_rows_single_request(self, mock_supabase):
        rows = [{"name": "A"}, {"name": "B"}]
        mock_supabase.table.return_value.insert.return_value.execute.return_value = MagicMock(
            data=[{"id": "1", "name": "A"}, {"id": "2", "name": "B"}]
        )

        stored = await FunnelStore(timeout=5).insert_rows("audiences", rows)

        assert [r["id"] for r in stored] == ["1", "2"]
        mock_supabase.table.return_value.insert.assert_called_once_with(rows)

    @pytest.mark.asyncio
    async def test_update_row(self, mock_supabase):
        update = mock_supabase.table.return_value.update
        update.return_value.eq.return_value.execute.return_value = MagicMock(
            data=[{"id": HOOK_MORNINGS, "is_starred": False}]
        )

        row = await FunnelStore(timeout=5).update_row("hooks", HOOK_MORNINGS, {"is_starred": False})

        assert row["is_starred"] is False
        update.assert_called_once_with({"is_starred": False})
        update.return_value.eq.assert_called_once_with("id", HOOK_MORNINGS)

    @pytest.mark.asyncio
    async def test_update_missing_row_fails(self, mock_supabase):
        update = mock_supabase.table.return_value.update
        update.return_value.eq.return_value.execute.return_value = MagicMock(data=[])

        with pytest.raises(FunnelStoreError, match="No row"):
            await FunnelStore(timeout=5).update_row("hooks", "missing", {"content": "x"})

    @pytest.mark.asyncio
    async def test_delete_rows_by_ids(self, mock_supabase):
        await FunnelStore(timeout=5).delete_rows("pain_desire_audiences", ["l1", "l2"])

        mock_supabase.table.return_value.delete.return_value.in_.assert_called_once_with("id", ["l1", "l2"])

    @pytest.mark.asyncio
    async def test_delete_rows_empty_is_noop(self, mock_supabase):
        await FunnelStore(timeout=5).delete_rows("pain_desire_audiences", [])

        mock_supabase.table.assert_not_called()


class TestErrors:
    @pytest.mark.asyncio
    async def test_client_errors_are_wrapped(self, mock_supabase):
        mock_supabase.table.return_value.delete.return_value.eq.return_value.execute.side_effect = (
            RuntimeError("connection reset")
        )

        with pytest.raises(FunnelStoreError, match="connection reset"):
            await FunnelStore(timeout=5).delete_row("audiences", "a1")

    @pytest.mark.asyncio
    async def test_slow_call_times_out(self, mock_supabase):
        mock_supabase.table.return_value.delete.return_value.eq.return_value.execute.side_effect = (
            lambda: time.sleep(0.3)
        )

        with pytest.raises(FunnelStoreError, match="timed out"):
            await FunnelStore(timeout=0.05).delete_row("audiences", "a1")
