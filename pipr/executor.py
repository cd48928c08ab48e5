import logging
import threading
from typing import Callable, Iterator, Optional, Sequence

from . import settings, utils
from .backend import InventoryBackend
from .exceptions import BackendError
from .schemas import MovementType, ProcessingResult, ResultStatus, StockUpdateRow

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

ITEM_NOT_FOUND = "item not found in local inventory"
UNKNOWN_ERROR = "unknown error"
UNEXPECTED_ERROR = "unexpected error while processing row"
STOCK_UPDATED = "stock updated successfully"


def target_stock(old_stock: float, row: StockUpdateRow) -> float:
    """Stock level the movement should leave behind. May be negative for OUT."""
    if row.movement_type is MovementType.ADJUSTMENT:
        return row.new_stock
    if row.movement_type is MovementType.IN:
        return old_stock + row.new_stock
    return old_stock - row.new_stock


def _error(row: StockUpdateRow, message: str, old_stock: Optional[float] = None):
    return ProcessingResult(
        row=row.line_number,
        sku=row.sku,
        status=ResultStatus.ERROR,
        message=message,
        old_stock=old_stock,
    )


def process_row(
    row: StockUpdateRow,
    facility_id: int,
    backend: InventoryBackend,
    batch_ts: int,
) -> ProcessingResult:
    """Looks up, checks and applies a single movement. Row-level failures come back as results."""
    item = backend.find_inventory_item(row.sku, facility_id)
    if item is None:
        return _error(row, ITEM_NOT_FOUND)

    old_stock = item.current_stock
    if row.movement_type is MovementType.OUT and target_stock(old_stock, row) < 0:
        return _error(
            row,
            f"insufficient stock: have {utils.format_quantity(old_stock)}, "
            f"requested {utils.format_quantity(row.new_stock)}",
            old_stock,
        )

    try:
        outcome = backend.apply_stock_mutation(
            item_id=item.id,
            quantity=row.new_stock,
            movement_type=row.movement_type,
            reference_type=settings.REFERENCE_TYPE,
            reference_id=f"bulk_{batch_ts}_row_{row.line_number}",
        )
    except BackendError as e:
        return _error(row, str(e) or UNKNOWN_ERROR, old_stock)

    if not outcome.success:
        return _error(row, outcome.message or UNKNOWN_ERROR, old_stock)

    # Report what the backend persisted, not what we computed locally.
    return ProcessingResult(
        row=row.line_number,
        sku=row.sku,
        status=ResultStatus.SUCCESS,
        message=STOCK_UPDATED,
        old_stock=old_stock,
        new_stock=outcome.new_stock,
    )


def iter_stock_updates(
    rows: Sequence[StockUpdateRow],
    facility_id: int,
    backend: InventoryBackend,
    batch_ts: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Iterator[tuple[ProcessingResult, float]]:
    """
    Applies the rows one at a time, yielding (result, progress_percent) after each.

    Each yield is the suspension point between two rows: cancellation is
    checked there, and nothing else runs concurrently with a row.
    """
    batch_ts = batch_ts if batch_ts is not None else utils.batch_timestamp_ms()
    total = len(rows)

    for index, row in enumerate(rows, start=1):
        if cancel_event is not None and cancel_event.is_set():
            logger.warning(f"⚠️ Batch cancelled after {index - 1} of {total} rows.")
            return

        try:
            result = process_row(row, facility_id, backend, batch_ts)
        except BackendError as e:
            result = _error(row, str(e) or UNKNOWN_ERROR)
        except Exception:
            logger.exception(f"Unexpected error on line {row.line_number} ({row.sku})")
            result = _error(row, UNEXPECTED_ERROR)

        if result.status is ResultStatus.SUCCESS:
            logger.info(
                f"  > Line {result.row} {result.sku}: "
                f"{utils.format_quantity(result.old_stock)} -> "
                f"{utils.format_quantity(result.new_stock)}"
            )
        else:
            logger.warning(f"  > Line {result.row} {result.sku}: {result.message}")

        yield result, index / total * 100


def execute_stock_updates(
    rows: Sequence[StockUpdateRow],
    facility_id: int,
    backend: InventoryBackend,
    progress_callback: Optional[ProgressCallback] = None,
    batch_ts: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
) -> list[ProcessingResult]:
    """Runs the whole batch and returns one result per processed row, in input order."""
    results = []
    for result, progress in iter_stock_updates(
        rows, facility_id, backend, batch_ts=batch_ts, cancel_event=cancel_event
    ):
        results.append(result)
        if progress_callback is not None:
            progress_callback(progress)
    return results
