"""
FIFO Allocation Service — Reconstructs which lots each production run consumed.

Production runs only record how much of each raw material they used, not
which lot it came from. This service replays the full history up to the
report cutoff and draws every run's consumption from the oldest lots first.

Algorithm:
1. PARTITION lots by raw material, SORT each queue by receipt date (oldest first)
2. SORT production runs by production date (whole history, not only the window)
3. For each run and each consumed raw material, WALK the queue:
   draw min(balance, still_required) from every lot with balance left
4. RECORD touched lot numbers in first-drawn order, without repeats
5. MARK the pair with the no-eligible-lot marker when nothing could be drawn

Stable sorts keep load order for equal timestamps. Shortfalls are not errors:
whatever could be drawn is reported and the uncovered remainder is logged.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import structlog

from parsers.production_records import Lot, ProductionRun

logger = structlog.get_logger(__name__)

NO_ELIGIBLE_LOT = "[sem lote elegível]"
LOT_SEPARATOR = "/"

# Float residue below this is not reported as a shortfall
_SHORTFALL_TOLERANCE = 1e-9

# Records without a timestamp sort ahead of every dated record
_UNDATED = datetime.min.replace(tzinfo=timezone.utc)


def _sort_instant(moment: Optional[datetime]) -> datetime:
    return moment if moment is not None else _UNDATED


@dataclass
class LotQueueItem:
    """A lot inside one allocation pass. Only `balance` changes."""
    lot_id: int
    lot_number: str
    received_at: Optional[datetime]
    balance: float


@dataclass
class MaterialAllocation:
    """Lots one production run drew from for one raw material."""
    lot_numbers: tuple[str, ...] = ()
    drawn: float = 0.0
    shortfall: float = 0.0

    @property
    def has_eligible_lot(self) -> bool:
        return bool(self.lot_numbers)

    @property
    def label(self) -> str:
        """'A/B/C', or the no-eligible-lot marker."""
        if not self.lot_numbers:
            return NO_ELIGIBLE_LOT
        return LOT_SEPARATOR.join(self.lot_numbers)


@dataclass
class AllocationResult:
    """Per run, per raw material allocation for one report invocation."""
    by_run: dict[int, dict[int, MaterialAllocation]] = field(default_factory=dict)

    def get(self, run_id: int, raw_material_id: int) -> MaterialAllocation:
        """Allocation for a run/material pair; the marker when absent."""
        return self.by_run.get(run_id, {}).get(raw_material_id, MaterialAllocation())

    @property
    def shortfall_count(self) -> int:
        return sum(
            1
            for materials in self.by_run.values()
            for allocation in materials.values()
            if allocation.shortfall > 0
        )


def build_lot_queues(lots: list[Lot]) -> dict[int, list[LotQueueItem]]:
    """
    Build one FIFO queue per raw material.

    Balances start at the received quantity; the current on-hand figure is
    ignored because it already reflects consumption.
    """
    queues: dict[int, list[LotQueueItem]] = {}
    for lot in lots:
        queues.setdefault(lot.raw_material_id, []).append(LotQueueItem(
            lot_id=lot.id,
            lot_number=lot.lot_number,
            received_at=lot.received_at,
            balance=max(lot.quantity_received, 0.0),
        ))

    for queue in queues.values():
        queue.sort(key=lambda item: _sort_instant(item.received_at))

    return queues


def draw_from_queue(queue: list[LotQueueItem], required: float) -> MaterialAllocation:
    """
    Draw `required` from the queue, oldest lot first, mutating balances.

    Returns the lots touched (first-drawn order, no repeats), the amount
    drawn and whatever could not be covered.
    """
    remaining = required
    drawn = 0.0
    touched: list[str] = []
    seen: set[str] = set()

    for item in queue:
        if remaining <= 0:
            break
        if item.balance <= 0:
            continue

        take = min(item.balance, remaining)
        if take > 0:
            item.balance -= take
            remaining -= take
            drawn += take
            if item.lot_number not in seen:
                seen.add(item.lot_number)
                touched.append(item.lot_number)

    return MaterialAllocation(
        lot_numbers=tuple(touched),
        drawn=drawn,
        shortfall=remaining if remaining > _SHORTFALL_TOLERANCE else 0.0,
    )


class FifoAllocationService:
    """Replays production history against lot receipts, oldest lot first."""

    def allocate(
        self,
        production_runs: list[ProductionRun],
        lots: list[Lot],
    ) -> AllocationResult:
        """
        Allocate every run's consumption to lots.

        Args:
            production_runs: All runs up to the report cutoff, any order
            lots: All lots, any order

        Returns:
            AllocationResult keyed by run id, then raw material id
        """
        queues = build_lot_queues(lots)
        ordered_runs = sorted(production_runs, key=lambda run: _sort_instant(run.produced_at))

        logger.info(
            "allocating_lots_fifo",
            production_runs=len(ordered_runs),
            lots=len(lots),
            raw_materials=len(queues),
        )

        result = AllocationResult()

        for run in ordered_runs:
            run_allocations: dict[int, MaterialAllocation] = {}

            for raw_material_id in sorted(run.consumption):
                required = run.consumption[raw_material_id]
                allocation = draw_from_queue(queues.get(raw_material_id, []), required)
                run_allocations[raw_material_id] = allocation

                if allocation.shortfall > 0:
                    logger.warning(
                        "allocation_shortfall",
                        production_run_id=run.id,
                        raw_material_id=raw_material_id,
                        required=required,
                        drawn=allocation.drawn,
                        shortfall=allocation.shortfall,
                        eligible_lot=allocation.has_eligible_lot,
                    )

            # Later run wins; the earlier one reads as the marker
            if run.id in result.by_run:
                logger.warning(
                    "duplicate_production_run_id",
                    production_run_id=run.id,
                    batch_label=run.batch_label,
                )
            result.by_run[run.id] = run_allocations

        logger.info(
            "fifo_allocation_complete",
            production_runs=len(result.by_run),
            shortfalls=result.shortfall_count,
        )

        return result


# Singleton
_fifo_allocation_service: Optional[FifoAllocationService] = None


def get_fifo_allocation_service() -> FifoAllocationService:
    """Get the singleton FIFO allocation service instance."""
    global _fifo_allocation_service
    if _fifo_allocation_service is None:
        _fifo_allocation_service = FifoAllocationService()
    return _fifo_allocation_service
