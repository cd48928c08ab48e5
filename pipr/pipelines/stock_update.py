import logging
import threading
from pathlib import Path
from typing import Optional

from pipr import data_handler, executor, parsers, settings, utils
from pipr.backend import InventoryBackend
from pipr.pipeline import DataPipeline
from pipr.schemas import ProcessingResult, ResultSummary, StockUpdateRow

logger = logging.getLogger(__name__)


class BulkStockUpdatePipeline(DataPipeline):
    """
    Bulk stock update of one CEDI from a CSV file.

    extract: read + all-or-nothing validation.
    transform: one remote movement per row, failures recorded per row.
    load: tally, console table, optional report files and webhook.
    """

    def __init__(
        self,
        csv_path: Path,
        backend: InventoryBackend,
        facility_id: Optional[int] = None,
        progress_callback: Optional[executor.ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        save_report: bool = False,
        test_mode: bool = False,
    ):
        super().__init__("bulk stock update", test_mode=test_mode)
        self.csv_path = Path(csv_path)
        self.backend = backend
        self.facility_id = facility_id
        self.progress_callback = progress_callback
        self.cancel_event = cancel_event
        self.save_report = save_report

    def resolve_facility(self) -> int:
        """Resolves the caller's CEDI once; later calls in the batch reuse it."""
        if self.facility_id is None:
            self.facility_id = self.backend.resolve_caller_facility()
        return self.facility_id

    def extract(self) -> list[StockUpdateRow]:
        logger.info(f"--- Reading {self.csv_path.name} ---")
        text = utils.read_csv_text(self.csv_path)
        return parsers.parse_stock_csv(text)

    def transform(self, rows: list[StockUpdateRow]) -> list[ProcessingResult]:
        # Resolved before the first row so a bad session aborts with nothing applied.
        facility_id = self.resolve_facility()
        logger.info(f"\n--- Applying {len(rows)} movements to CEDI {facility_id} ---")

        return executor.execute_stock_updates(
            rows,
            facility_id,
            self.backend,
            progress_callback=self.progress_callback,
            batch_ts=utils.batch_timestamp_ms(),
            cancel_event=self.cancel_event,
        )

    def load(self, results: list[ProcessingResult]) -> ResultSummary:
        summary = ResultSummary.from_results(results)

        logger.info("\n--- Processing Results ---")
        logger.info(data_handler.render_results(summary))

        if self.save_report:
            data_handler.save_outputs(summary, settings.RESULTS_FILENAME_BASE)

        if not self.test_mode:
            data_handler.post_to_webhook(
                summary,
                metadata={
                    "file": self.csv_path.name,
                    "cedi_id": self.facility_id,
                },
                report_type="bulk_stock_update",
            )
        else:
            logger.info("🧪 Test Mode: Skipping webhook post.")

        return summary
