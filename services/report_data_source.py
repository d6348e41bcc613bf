"""
Report data source — reads the four datasets a traceability report needs.

Production runs are read up to the cutoff only, never from the report's
lower bound: the allocator has to replay every earlier run to know what
was left in each lot when the window opens.
"""

from datetime import datetime
from typing import Optional, Protocol

import structlog

from config import get_supabase_client

logger = structlog.get_logger(__name__)

RAW_MATERIALS_TABLE = "materias_primas"
LOTS_TABLE = "lotes"
FORMULAS_TABLE = "formulas"
PRODUCTION_RUNS_TABLE = "producoes"

RAW_MATERIAL_COLUMNS = "id, user_id, nome, estoque_atual, unidade_medida, created_at"
LOT_COLUMNS = (
    "id, user_id, materia_prima_id, fornecedor_id, numero_lote, "
    "quantidade_recebida, quantidade_atual, data_recebimento, created_at"
)
FORMULA_COLUMNS = "id, user_id, nome, componentes, created_at"
PRODUCTION_RUN_COLUMNS = (
    "id, user_id, formula_id, quantidade_produzida, data_producao, "
    "created_at, lote_producao, materia_prima_consumida"
)


class ReportDataSource(Protocol):
    """What the report service needs from storage."""

    def load_raw_materials(self, tenant_id: Optional[str] = None) -> list[dict]: ...

    def load_lots(self, tenant_id: Optional[str] = None) -> list[dict]: ...

    def load_formulas(self, tenant_id: Optional[str] = None) -> list[dict]: ...

    def load_production_runs(
        self,
        tenant_id: Optional[str],
        cutoff_exclusive: datetime,
    ) -> list[dict]: ...


class SupabaseReportDataSource:
    """
    Supabase implementation of ReportDataSource.

    Every method raises whatever the client raises; the report service
    turns that into a DataLoadError.
    """

    def __init__(self, client=None):
        self.db = client or get_supabase_client()

    def _select(self, table: str, columns: str, tenant_id: Optional[str]):
        query = self.db.table(table).select(columns)
        if tenant_id:
            query = query.eq("user_id", tenant_id)
        return query

    def load_raw_materials(self, tenant_id: Optional[str] = None) -> list[dict]:
        result = self._select(RAW_MATERIALS_TABLE, RAW_MATERIAL_COLUMNS, tenant_id).execute()
        return result.data or []

    def load_lots(self, tenant_id: Optional[str] = None) -> list[dict]:
        result = self._select(LOTS_TABLE, LOT_COLUMNS, tenant_id).execute()
        return result.data or []

    def load_formulas(self, tenant_id: Optional[str] = None) -> list[dict]:
        result = self._select(FORMULAS_TABLE, FORMULA_COLUMNS, tenant_id).execute()
        return result.data or []

    def load_production_runs(
        self,
        tenant_id: Optional[str],
        cutoff_exclusive: datetime,
    ) -> list[dict]:
        """
        Get every production run before the cutoff, oldest first.

        Args:
            tenant_id: Restrict to this owner (all owners when None)
            cutoff_exclusive: Local midnight after the report's last day

        Returns:
            Raw producoes rows
        """
        logger.debug(
            "loading_production_runs",
            tenant_id=tenant_id,
            cutoff=cutoff_exclusive.isoformat(),
        )
        result = (
            self._select(PRODUCTION_RUNS_TABLE, PRODUCTION_RUN_COLUMNS, tenant_id)
            .lt("data_producao", cutoff_exclusive.isoformat())
            .order("data_producao", desc=False)
            .execute()
        )
        return result.data or []


# Singleton
_report_data_source: Optional[SupabaseReportDataSource] = None


def get_report_data_source() -> SupabaseReportDataSource:
    """Get or create SupabaseReportDataSource instance."""
    global _report_data_source
    if _report_data_source is None:
        _report_data_source = SupabaseReportDataSource()
    return _report_data_source
