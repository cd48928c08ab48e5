import argparse
import logging
import sys
from pathlib import Path

from pipr.backend import SupabaseBackend
from pipr.exceptions import PiprError
from pipr.logger import setup_logger
from pipr.pipelines.stock_update import BulkStockUpdatePipeline

logger = logging.getLogger(__name__)


def _print_progress(percent: float):
    logger.info(f"  ... {percent:.0f}% completed")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Bulk stock update of a CEDI's local inventory from a CSV file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "CSV columns: sku, new_stock, movement_type (IN | OUT | ADJUSTMENT), "
            "optional notes.\n"
            "Example: python update_stock.py stock.csv --save-report"
        ),
    )
    parser.add_argument("csv_file", type=Path, help="CSV file with the stock movements")
    parser.add_argument(
        "--facility-id",
        type=int,
        default=None,
        help="CEDI id to update (default: the CEDI of the signed-in user)",
    )
    parser.add_argument(
        "--save-report",
        action="store_true",
        default=False,
        help="Save the per-row results as CSV/JSON under OUTPUT_DIR",
    )
    parser.add_argument(
        "--test-mode",
        action="store_true",
        default=False,
        help="Do not post the summary to the webhook",
    )
    return parser


def main(argv=None) -> int:
    """Main entry point. Returns 0 when the batch ran, 1 on a fatal error."""
    args = build_parser().parse_args(argv)
    setup_logger()

    try:
        pipeline = BulkStockUpdatePipeline(
            csv_path=args.csv_file,
            backend=SupabaseBackend(),
            facility_id=args.facility_id,
            progress_callback=_print_progress,
            save_report=args.save_report,
            test_mode=args.test_mode,
        )
        summary = pipeline.run()
    except PiprError as e:
        logger.error(f"❌ Error: {e}")
        return 1

    if summary.success_count == 0:
        logger.warning("⚠️ No stock was updated.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
