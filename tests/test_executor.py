"""Tests for pipr/executor.py."""

import threading

import pytest

from conftest import FakeBackend
from pipr import executor
from pipr.exceptions import BackendError
from pipr.schemas import (
    MovementType,
    ResultStatus,
    ResultSummary,
    StockMutationOutcome,
    StockUpdateRow,
)

BATCH_TS = 1700000000000


def make_row(sku, qty, movement, line=2):
    return StockUpdateRow(
        sku=sku, new_stock=qty, movement_type=MovementType(movement), line_number=line
    )


class TestTargetStock:
    """Test movement arithmetic."""

    def test_adjustment_sets_absolute(self):
        assert executor.target_stock(40, make_row("A", 100, "ADJUSTMENT")) == 100
        assert executor.target_stock(400, make_row("A", 3, "ADJUSTMENT")) == 3

    def test_in_adds(self):
        assert executor.target_stock(40, make_row("A", 5, "IN")) == 45

    def test_out_subtracts(self):
        assert executor.target_stock(40, make_row("A", 5, "OUT")) == 35
        assert executor.target_stock(4, make_row("A", 5, "OUT")) == -1


class TestExecuteStockUpdates:
    """Test the per-row executor against an in-memory backend."""

    def test_mixed_batch_scenario(self):
        """Adjustment succeeds, oversized OUT and unknown SKU become row errors."""
        backend = FakeBackend(stock={"ART001": 40, "ART002": 10})
        rows = [
            make_row("ART001", 100, "ADJUSTMENT", line=2),
            make_row("ART002", 9999, "OUT", line=3),
            make_row("ART999", 5, "IN", line=4),
        ]

        results = executor.execute_stock_updates(rows, 7, backend, batch_ts=BATCH_TS)

        assert [r.row for r in results] == [2, 3, 4]
        assert results[0].status is ResultStatus.SUCCESS
        assert results[0].old_stock == 40
        assert results[0].new_stock == 100

        assert results[1].status is ResultStatus.ERROR
        assert results[1].message == "insufficient stock: have 10, requested 9999"
        assert results[1].old_stock == 10
        assert results[1].new_stock is None

        assert results[2].status is ResultStatus.ERROR
        assert results[2].message == "item not found in local inventory"
        assert results[2].old_stock is None

        # Only the adjustment reached the backend.
        assert len(backend.mutations) == 1

        summary = ResultSummary.from_results(results)
        assert (summary.success_count, summary.error_count, summary.total_count) == (1, 2, 3)

    def test_in_and_out_movements(self):
        """IN raises stock, OUT lowers it, both by the given quantity."""
        backend = FakeBackend(stock={"A": 10, "B": 10})
        rows = [make_row("A", 5, "IN", 2), make_row("B", 10, "OUT", 3)]

        results = executor.execute_stock_updates(rows, 7, backend, batch_ts=BATCH_TS)

        assert [(r.old_stock, r.new_stock) for r in results] == [(10, 15), (10, 0)]
        assert [m["quantity"] for m in backend.mutations] == [5, 10]

    def test_in_on_negative_stock(self):
        """Only OUT is checked against available stock; IN still applies."""
        backend = FakeBackend(stock={"A": -5})
        results = executor.execute_stock_updates(
            [make_row("A", 2, "IN")], 7, backend, batch_ts=BATCH_TS
        )

        assert results[0].status is ResultStatus.SUCCESS
        assert (results[0].old_stock, results[0].new_stock) == (-5, -3)
        assert len(backend.mutations) == 1

    def test_adjustment_on_negative_stock(self):
        backend = FakeBackend(stock={"A": -5})
        results = executor.execute_stock_updates(
            [make_row("A", 0, "ADJUSTMENT")], 7, backend, batch_ts=BATCH_TS
        )
        assert results[0].status is ResultStatus.SUCCESS
        assert results[0].new_stock == 0

    def test_mutation_arguments(self):
        """The remote call carries the bulk reference type and a per-row reference id."""
        backend = FakeBackend(stock={"A": 1})
        executor.execute_stock_updates(
            [make_row("A", 2, "IN", line=9)], 7, backend, batch_ts=BATCH_TS
        )

        mutation = backend.mutations[0]
        assert mutation["item_id"] == backend.items["A"].id
        assert mutation["movement_type"] is MovementType.IN
        assert mutation["reference_type"] == "CSV_BULK_UPDATE"
        assert mutation["reference_id"] == f"bulk_{BATCH_TS}_row_9"

    def test_lookup_scoped_to_facility(self):
        """Items are looked up within the injected facility only."""
        backend = FakeBackend(stock={"A": 1}, facility_id=7)
        results = executor.execute_stock_updates(
            [make_row("A", 1, "IN")], 8, backend, batch_ts=BATCH_TS
        )
        assert backend.lookups == [("A", 8)]
        assert results[0].message == "item not found in local inventory"

    def test_reports_backend_confirmed_stock(self):
        """new_stock comes from the backend reply, not local arithmetic."""
        backend = FakeBackend(stock={"A": 10})
        backend.apply_stock_mutation = lambda **kwargs: StockMutationOutcome(
            success=True, new_stock=12
        )
        results = executor.execute_stock_updates(
            [make_row("A", 5, "IN")], 7, backend, batch_ts=BATCH_TS
        )
        assert results[0].new_stock == 12

    def test_rejected_mutation(self):
        """A business-rule rejection keeps the returned message and old stock."""
        backend = FakeBackend(stock={"A": 10})
        backend.apply_stock_mutation = lambda **kwargs: StockMutationOutcome(
            success=False, message="article is locked"
        )
        results = executor.execute_stock_updates(
            [make_row("A", 5, "IN")], 7, backend, batch_ts=BATCH_TS
        )
        assert results[0].status is ResultStatus.ERROR
        assert results[0].message == "article is locked"
        assert results[0].old_stock == 10

    def test_rejected_mutation_without_message(self):
        """A rejection without text falls back to a generic message."""
        backend = FakeBackend(stock={"A": 10})
        backend.apply_stock_mutation = lambda **kwargs: StockMutationOutcome(success=False)
        results = executor.execute_stock_updates(
            [make_row("A", 5, "IN")], 7, backend, batch_ts=BATCH_TS
        )
        assert results[0].message == "unknown error"

    def test_transport_error_on_mutation(self):
        """A failed remote call becomes a row error and the batch continues."""
        backend = FakeBackend(stock={"A": 10, "B": 3})
        original = backend.apply_stock_mutation

        def flaky(**kwargs):
            if kwargs["item_id"] == backend.items["A"].id:
                raise BackendError("connection reset")
            return original(**kwargs)

        backend.apply_stock_mutation = flaky
        results = executor.execute_stock_updates(
            [make_row("A", 1, "IN", 2), make_row("B", 1, "IN", 3)],
            7,
            backend,
            batch_ts=BATCH_TS,
        )
        assert results[0].status is ResultStatus.ERROR
        assert results[0].message == "connection reset"
        assert results[0].old_stock == 10
        assert results[1].status is ResultStatus.SUCCESS

    def test_transport_error_on_lookup(self):
        """A failed lookup is recorded without an old stock value."""
        backend = FakeBackend(stock={"A": 10})

        def broken_lookup(sku, facility_id):
            raise BackendError("timeout")

        backend.find_inventory_item = broken_lookup
        results = executor.execute_stock_updates(
            [make_row("A", 1, "IN")], 7, backend, batch_ts=BATCH_TS
        )
        assert results[0].status is ResultStatus.ERROR
        assert results[0].message == "timeout"
        assert results[0].old_stock is None

    def test_unexpected_exception_is_contained(self):
        """Unexpected errors produce a generic row error, later rows still run."""
        backend = FakeBackend(stock={"A": 10, "B": 10})
        original = backend.find_inventory_item

        def lookup(sku, facility_id):
            if sku == "A":
                raise KeyError("boom")
            return original(sku, facility_id)

        backend.find_inventory_item = lookup
        results = executor.execute_stock_updates(
            [make_row("A", 1, "IN", 2), make_row("B", 1, "IN", 3)],
            7,
            backend,
            batch_ts=BATCH_TS,
        )
        assert results[0].message == executor.UNEXPECTED_ERROR
        assert results[1].status is ResultStatus.SUCCESS

    def test_one_result_per_row_in_order(self):
        """Results mirror the input order one-to-one."""
        backend = FakeBackend(stock={"A": 10})
        rows = [make_row(sku, 1, "IN", line) for line, sku in enumerate("AXAYA", start=2)]
        results = executor.execute_stock_updates(rows, 7, backend, batch_ts=BATCH_TS)
        assert [r.row for r in results] == [2, 3, 4, 5, 6]
        assert [r.sku for r in results] == list("AXAYA")


class TestProgress:
    """Test progress reporting and cancellation."""

    def test_progress_after_each_row(self):
        """Progress is k/n*100 after row k, whatever its outcome."""
        backend = FakeBackend(stock={"A": 10})
        rows = [make_row("A", 1, "IN"), make_row("Z", 1, "IN"), make_row("A", 99, "OUT"), make_row("A", 1, "IN")]
        seen = []

        executor.execute_stock_updates(
            rows, 7, backend, progress_callback=seen.append, batch_ts=BATCH_TS
        )

        assert seen == pytest.approx([25, 50, 75, 100])
        assert seen == sorted(seen)

    def test_iterator_yields_per_row(self):
        """The iterator hands back control after every row."""
        backend = FakeBackend(stock={"A": 10})
        updates = executor.iter_stock_updates(
            [make_row("A", 1, "IN"), make_row("A", 1, "IN")], 7, backend, batch_ts=BATCH_TS
        )

        result, progress = next(updates)
        assert progress == 50
        assert len(backend.mutations) == 1

        result, progress = next(updates)
        assert progress == 100
        assert result.new_stock == 12

    def test_cancellation_between_rows(self):
        """Setting the event stops the batch before the next row."""
        backend = FakeBackend(stock={"A": 10})
        cancel = threading.Event()
        rows = [make_row("A", 1, "IN")] * 3

        def cancel_after_first(progress):
            cancel.set()

        results = executor.execute_stock_updates(
            rows,
            7,
            backend,
            progress_callback=cancel_after_first,
            batch_ts=BATCH_TS,
            cancel_event=cancel,
        )
        assert len(results) == 1
        assert len(backend.mutations) == 1
