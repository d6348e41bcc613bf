"""
Normalizer for production traceability records.

Converts the loosely typed rows read from Supabase (numbers that arrive as
strings, JSON columns that arrive as text, nullable everything) into typed
records with safe defaults. A malformed field never rejects its row.

Source tables:
- materias_primas: id, nome, unidade_medida
- formulas: id, nome, componentes (JSON list)
- producoes: id, formula_id, lote_producao, quantidade_produzida,
  data_producao, materia_prima_consumida (JSON object)
- lotes: id, materia_prima_id, numero_lote, quantidade_recebida,
  quantidade_atual, data_recebimento
"""

import copy
import json
import re
from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from typing import Any, Optional, TypeVar

import structlog
from pydantic import TypeAdapter, ValidationError as PydanticValidationError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_DATETIME_ADAPTER = TypeAdapter(datetime)

# PostgREST timestamp shapes rewritten to what the datetime parser accepts
_DATE_TIME_SPACE = re.compile(r"^(\d{4}-\d{2}-\d{2}) ")
_LONG_FRACTION = re.compile(r"(\.\d{6})\d+")
_SHORT_OFFSET = re.compile(r"(T[\d:.]+)([+-]\d{2}):?(\d{2})?$")


@dataclass
class RawMaterial:
    """Raw material reference data."""
    id: int
    name: str
    unit: str


@dataclass
class FormulaComponent:
    """One ingredient line of a formula (display only)."""
    quantity: float
    unit: str
    raw_material_id: str


@dataclass
class Formula:
    """Formula reference data."""
    id: int
    name: str
    components: list[FormulaComponent] = field(default_factory=list)


@dataclass
class Lot:
    """A received quantity of one raw material."""
    id: int
    raw_material_id: int
    lot_number: str
    quantity_received: float
    quantity_on_hand: float
    received_at: Optional[datetime]


@dataclass
class ProductionRun:
    """One execution of a formula and the raw materials it consumed."""
    id: int
    formula_id: int
    batch_label: str
    quantity_produced: float
    produced_at: Optional[datetime]
    consumption: dict[int, float] = field(default_factory=dict)


@dataclass
class NormalizedRecords:
    """Everything a report needs, in canonical form."""
    raw_materials_by_id: dict[int, RawMaterial] = field(default_factory=dict)
    formulas_by_id: dict[int, Formula] = field(default_factory=dict)
    production_runs: list[ProductionRun] = field(default_factory=list)
    lots: list[Lot] = field(default_factory=list)


# ===================
# SCALAR COERCION
# ===================

def _safe_float(value) -> float:
    """Convert value to float, 0.0 when missing or unparseable."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        result = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return 0.0
    # NaN and infinities cannot be allocated
    if result != result or result in (float("inf"), float("-inf")):
        return 0.0
    return result


def _safe_int(value) -> int:
    """Convert value to int, 0 when missing or unparseable."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return 0


def _safe_str(value) -> str:
    """Convert value to str, empty when missing."""
    if value is None:
        return ""
    return str(value)


def parse_timestamp(value, tz: tzinfo) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp or date into an aware datetime.

    Accepts the shapes PostgREST returns for timestamptz: space or 'T'
    separator, 1-9 fraction digits, 'Z', '+HH', '+HHMM' or '+HH:MM' offsets.
    Naive values (including bare dates) are read as local time in `tz`.
    Returns None when missing or unparseable.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = _DATE_TIME_SPACE.sub(r"\1T", str(value).strip(), count=1)
        text = _LONG_FRACTION.sub(r"\1", text)
        text = _SHORT_OFFSET.sub(lambda m: f"{m.group(1)}{m.group(2)}:{m.group(3) or '00'}", text)
        try:
            parsed = _DATETIME_ADAPTER.validate_python(text)
        except PydanticValidationError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


# ===================
# STRUCTURED FIELDS
# ===================

def parse_or_default(value: Any, expected_type: type[T], default: T) -> T:
    """
    Read an embedded structured field that may arrive parsed or as JSON text.

    - value already of expected_type: returned as is
    - str: decoded as JSON, kept only if the result is of expected_type
    - None, other types, invalid JSON: a copy of default

    The default is copied so callers can mutate the result freely.
    """
    if isinstance(value, expected_type) and not isinstance(value, str):
        return value
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except (json.JSONDecodeError, ValueError):
            return copy.deepcopy(default)
        if isinstance(decoded, expected_type):
            return decoded
    return copy.deepcopy(default)


def parse_components(value) -> list[FormulaComponent]:
    """formulas.componentes -> list of components. Fallback: []."""
    items = parse_or_default(value, list, [])
    components = []
    for item in items:
        if not isinstance(item, dict):
            continue
        components.append(FormulaComponent(
            quantity=_safe_float(item.get("quantidade")),
            unit=_safe_str(item.get("unidade_medida")),
            raw_material_id=_safe_str(item.get("materia_prima_id")),
        ))
    return components


def parse_consumption(value) -> dict[int, float]:
    """
    producoes.materia_prima_consumida -> {raw_material_id: quantity}.

    Fallback: {}. Keys that are not integer-like are dropped; keys naming
    the same id ("1" and "01") are summed.
    """
    raw = parse_or_default(value, dict, {})
    consumption: dict[int, float] = {}
    for key, quantity in raw.items():
        try:
            material_id = int(str(key).strip())
        except ValueError:
            logger.debug("consumption_key_skipped", key=str(key))
            continue
        if material_id in consumption:
            logger.warning("consumption_key_merged", key=str(key), raw_material_id=material_id)
            consumption[material_id] += _safe_float(quantity)
        else:
            consumption[material_id] = _safe_float(quantity)
    return consumption


# ===================
# ROW NORMALIZERS
# ===================

def normalize_raw_material(row: dict) -> RawMaterial:
    return RawMaterial(
        id=_safe_int(row.get("id")),
        name=_safe_str(row.get("nome")),
        unit=_safe_str(row.get("unidade_medida")),
    )


def normalize_formula(row: dict) -> Formula:
    return Formula(
        id=_safe_int(row.get("id")),
        name=_safe_str(row.get("nome")),
        components=parse_components(row.get("componentes")),
    )


def normalize_production_run(row: dict, tz: tzinfo) -> ProductionRun:
    return ProductionRun(
        id=_safe_int(row.get("id")),
        formula_id=_safe_int(row.get("formula_id")),
        batch_label=_safe_str(row.get("lote_producao")),
        quantity_produced=_safe_float(row.get("quantidade_produzida")),
        produced_at=parse_timestamp(row.get("data_producao"), tz),
        consumption=parse_consumption(row.get("materia_prima_consumida")),
    )


def normalize_lot(row: dict, tz: tzinfo) -> Lot:
    return Lot(
        id=_safe_int(row.get("id")),
        raw_material_id=_safe_int(row.get("materia_prima_id")),
        lot_number=_safe_str(row.get("numero_lote")),
        quantity_received=_safe_float(row.get("quantidade_recebida")),
        quantity_on_hand=_safe_float(row.get("quantidade_atual")),
        received_at=parse_timestamp(row.get("data_recebimento"), tz),
    )


def normalize_records(
    raw_materials: list[dict],
    formulas: list[dict],
    production_runs: list[dict],
    lots: list[dict],
    tz: tzinfo,
) -> NormalizedRecords:
    """
    Normalize the four source datasets.

    Args:
        raw_materials: materias_primas rows
        formulas: formulas rows
        production_runs: producoes rows
        lots: lotes rows
        tz: Timezone applied to naive timestamps

    Returns:
        NormalizedRecords with id-keyed reference data and load-ordered
        runs and lots
    """
    records = NormalizedRecords(
        raw_materials_by_id={
            material.id: material
            for material in (normalize_raw_material(row) for row in raw_materials)
        },
        formulas_by_id={
            formula.id: formula
            for formula in (normalize_formula(row) for row in formulas)
        },
        production_runs=[normalize_production_run(row, tz) for row in production_runs],
        lots=[normalize_lot(row, tz) for row in lots],
    )

    undated_runs = sum(1 for run in records.production_runs if run.produced_at is None)
    undated_lots = sum(1 for lot in records.lots if lot.received_at is None)
    if undated_runs or undated_lots:
        logger.warning(
            "records_without_timestamp",
            production_runs=undated_runs,
            lots=undated_lots,
        )

    logger.debug(
        "records_normalized",
        raw_materials=len(records.raw_materials_by_id),
        formulas=len(records.formulas_by_id),
        production_runs=len(records.production_runs),
        lots=len(records.lots),
    )

    return records
