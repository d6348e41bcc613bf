"""
Tests for report_data_source — Supabase queries.
"""

from datetime import datetime
from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import pytest

from services.report_data_source import (
    LOTS_TABLE,
    PRODUCTION_RUNS_TABLE,
    SupabaseReportDataSource,
)
from tests.factories import LotRowFactory, ProductionRunRowFactory

CUTOFF = datetime(2025, 7, 1, tzinfo=ZoneInfo("America/Sao_Paulo"))


class TestSupabaseReportDataSource:
    """Tests against the mock Supabase client."""

    def test_loads_all_rows_without_tenant(self, mock_supabase):
        mock_supabase.set_table_data(LOTS_TABLE, [
            LotRowFactory.create(raw_material_id=1, quantity_received=1, received_at="2025-05-01", user_id="a"),
            LotRowFactory.create(raw_material_id=1, quantity_received=1, received_at="2025-05-02", user_id="b"),
        ])
        source = SupabaseReportDataSource(client=mock_supabase)

        assert len(source.load_lots()) == 2

    def test_tenant_filter(self, mock_supabase):
        mock_supabase.set_table_data(LOTS_TABLE, [
            LotRowFactory.create(raw_material_id=1, quantity_received=1, received_at="2025-05-01", user_id="a"),
            LotRowFactory.create(raw_material_id=1, quantity_received=1, received_at="2025-05-02", user_id="b"),
        ])
        source = SupabaseReportDataSource(client=mock_supabase)

        rows = source.load_lots("b")
        assert [row["user_id"] for row in rows] == ["b"]

    def test_missing_table_is_empty(self, mock_supabase):
        source = SupabaseReportDataSource(client=mock_supabase)
        assert source.load_formulas() == []
        assert source.load_raw_materials() == []

    def test_production_runs_before_cutoff_oldest_first(self, mock_supabase):
        mock_supabase.set_table_data(PRODUCTION_RUNS_TABLE, [
            ProductionRunRowFactory.create(id=3, produced_at="2025-06-20T10:00:00"),
            ProductionRunRowFactory.create(id=1, produced_at="2025-01-05T10:00:00"),
            ProductionRunRowFactory.create(id=9, produced_at="2025-07-02T10:00:00"),
        ])
        source = SupabaseReportDataSource(client=mock_supabase)

        rows = source.load_production_runs(None, CUTOFF)

        # History before the window is kept; nothing on or after the cutoff
        assert [row["id"] for row in rows] == [1, 3]

    def test_production_runs_query_shape(self):
        client = MagicMock()
        query = client.table.return_value.select.return_value
        query.eq.return_value = query
        query.lt.return_value = query
        query.order.return_value = query
        query.execute.return_value = MagicMock(data=None)
        source = SupabaseReportDataSource(client=client)

        rows = source.load_production_runs("tenant-1", CUTOFF)

        assert rows == []
        client.table.assert_called_once_with(PRODUCTION_RUNS_TABLE)
        query.eq.assert_called_once_with("user_id", "tenant-1")
        query.lt.assert_called_once_with("data_producao", CUTOFF.isoformat())
        query.order.assert_called_once_with("data_producao", desc=False)
        query.gte.assert_not_called()

    def test_errors_propagate(self, mock_supabase):
        mock_supabase.set_table_error(LOTS_TABLE, ConnectionError("timeout"))
        source = SupabaseReportDataSource(client=mock_supabase)

        with pytest.raises(ConnectionError):
            source.load_lots()
