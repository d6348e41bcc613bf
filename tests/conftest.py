"""
Shared test fixtures.
"""

import os
import sys
from pathlib import Path

# Add project root to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

# Settings are validated on import; give the required values something to load
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("REPORT_TIMEZONE", "America/Sao_Paulo")

import pytest
from unittest.mock import patch
from zoneinfo import ZoneInfo

from tests.factories import (
    FormulaRowFactory,
    LotRowFactory,
    ProductionRunRowFactory,
    RawMaterialRowFactory,
)

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods."""

    def __init__(self, data: list = None, error: Exception = None):
        self._data = data or []
        self._error = error
        self.filters: list[tuple] = []

    def select(self, *args, **kwargs):
        return self

    def eq(self, column, value):
        self.filters.append(("eq", column, value))
        self._data = [row for row in self._data if row.get(column) == value]
        return self

    def lt(self, column, value):
        self.filters.append(("lt", column, value))
        self._data = [row for row in self._data if str(row.get(column)) < str(value)]
        return self

    def order(self, column, desc: bool = False, **kwargs):
        self._data = sorted(self._data, key=lambda row: str(row.get(column)), reverse=desc)
        return self

    def limit(self, count):
        self._data = self._data[:count]
        return self

    def execute(self) -> MockSupabaseResponse:
        if self._error is not None:
            raise self._error
        return MockSupabaseResponse(data=list(self._data))


class MockSupabaseTable:
    """Mock Supabase table with configurable rows."""

    def __init__(self, data: list = None, error: Exception = None):
        self._data = data or []
        self._error = error

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(list(self._data), self._error)


class MockStorageBucket:
    """Mock Supabase Storage bucket."""

    def __init__(self, name: str, uploads: dict, error: Exception = None):
        self.name = name
        self._uploads = uploads
        self._error = error

    def upload(self, path, file, file_options=None):
        if self._error is not None:
            raise self._error
        self._uploads[(self.name, path)] = {"bytes": file, "options": file_options or {}}
        return {"Key": f"{self.name}/{path}"}

    def get_public_url(self, path):
        return f"https://storage.test/{self.name}/{path}"


class MockStorage:
    """Mock Supabase Storage client."""

    def __init__(self):
        self.uploads: dict = {}
        self.error: Exception = None

    def from_(self, bucket: str) -> MockStorageBucket:
        return MockStorageBucket(bucket, self.uploads, self.error)


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables = {}
        self.storage = MockStorage()

    def set_table_data(self, table_name: str, data: list):
        """Configure mock rows for a table."""
        self._tables[table_name] = {"data": data, "error": None}

    def set_table_error(self, table_name: str, error: Exception):
        """Make every query on a table fail."""
        self._tables[table_name] = {"data": [], "error": error}

    def table(self, name: str) -> MockSupabaseTable:
        config = self._tables.get(name, {"data": [], "error": None})
        return MockSupabaseTable(config["data"], config["error"])


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("lotes", [LotRowFactory.create(...)])
    """
    return MockSupabaseClient()


@pytest.fixture
def report_tz() -> ZoneInfo:
    """Local calendar used by the report tests."""
    return ZoneInfo("America/Sao_Paulo")


@pytest.fixture(autouse=True)
def reset_factories():
    """Keep generated ids predictable per test."""
    for factory in (RawMaterialRowFactory, FormulaRowFactory, LotRowFactory, ProductionRunRowFactory):
        factory.reset_counter()
    yield


@pytest.fixture
def traceability_rows() -> dict:
    """
    Two lots of one material and two runs a month apart.

    Lots: A (2025-05-01, 100), B (2025-05-10, 100) of material 1
    Runs: R1 2025-05-15 batch L1 uses 60; R2 2025-06-02 batch L2 uses 70
    """
    return {
        "materias_primas": [RawMaterialRowFactory.create(id=1, name="Farelo de soja", unit="kg")],
        "formulas": [FormulaRowFactory.create(id=7, name="Ração Crescimento")],
        "lotes": [
            LotRowFactory.create(id=1, raw_material_id=1, lot_number="A",
                                 quantity_received=100, received_at="2025-05-01"),
            LotRowFactory.create(id=2, raw_material_id=1, lot_number="B",
                                 quantity_received=100, received_at="2025-05-10"),
        ],
        "producoes": [
            ProductionRunRowFactory.create(id=1, formula_id=7, batch_label="L1",
                                           produced_at="2025-05-15T08:00:00",
                                           consumption={"1": 60}),
            ProductionRunRowFactory.create(id=2, formula_id=7, batch_label="L2",
                                           produced_at="2025-06-02T08:00:00",
                                           consumption={"1": 70}),
        ],
    }


@pytest.fixture
def seeded_supabase(mock_supabase, traceability_rows) -> MockSupabaseClient:
    """Mock client loaded with traceability_rows."""
    for table, rows in traceability_rows.items():
        mock_supabase.set_table_data(table, rows)
    return mock_supabase


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_mock_db(seeded_supabase, report_tz):
    """
    Create FastAPI test client whose report service reads the mock client.

    Usage:
        def test_endpoint(test_client_with_mock_db):
            response = test_client_with_mock_db.get("/api/reports/fifo")
    """
    from fastapi.testclient import TestClient
    from main import app
    from services.production_report_service import ProductionReportService
    from services.report_data_source import SupabaseReportDataSource
    from services.report_storage_service import ReportStorageService

    service = ProductionReportService(
        data_source=SupabaseReportDataSource(client=seeded_supabase),
        storage=ReportStorageService(client=seeded_supabase, bucket="reports", prefix="relatorios"),
        tz=report_tz,
    )

    with patch("routes.reports.get_production_report_service", return_value=service):
        yield TestClient(app)
