import json
import logging
from pathlib import Path
from typing import Any, Optional

import requests

from . import settings
from . import utils
from .schemas import ResultStatus, ResultSummary

logger = logging.getLogger(__name__)


def render_results(summary: ResultSummary) -> str:
    """Per-row table followed by the success/error tally, ready for the console."""
    table = summary.to_dataframe().fillna("").to_string(index=False)
    tally = (
        f"{summary.success_count} succeeded, "
        f"{summary.error_count} failed, "
        f"{summary.total_count} total"
    )
    return f"{table}\n\n{tally}"


def save_outputs(
    summary: ResultSummary, report_name: str, output_dir: Optional[Path] = None
) -> dict[str, Path]:
    """Saves the per-row results to CSV and conditionally to JSON, with dated filenames."""
    output_dir = output_dir or settings.OUTPUT_DIR
    output_dir.mkdir(parents=True, exist_ok=True)
    date_suffix = utils.get_date_suffix_for_filename()

    saved = {}
    csv_path = output_dir / f"{report_name}_{date_suffix}.csv"
    summary.to_dataframe().to_csv(csv_path, index=False)
    saved["csv"] = csv_path
    logger.info(f"✅ Results saved to: {csv_path}")

    if settings.SAVE_JSON_OUTPUT:
        json_path = output_dir / f"{report_name}_{date_suffix}.json"
        with open(json_path, "w", encoding="utf-8") as f:
            json.dump(summary.model_dump(mode="json"), f, indent=2, ensure_ascii=False)
        saved["json"] = json_path
        logger.info(f"✅ JSON output saved to: {json_path}")
    else:
        logger.info("Skipping JSON file save as per configuration.")

    return saved


def post_to_webhook(
    summary: ResultSummary, metadata: dict[str, Any], report_type: str
) -> bool:
    """
    Posts the batch tally, the failed rows and run metadata to the webhook.
    Failures are logged only; the stock updates have already been applied.
    """
    if not settings.WEBHOOK_URL:
        logger.warning("⚠️ WEBHOOK_URL not set. Skipping webhook post.")
        return False

    logger.info(f"🚀 Posting {report_type} summary to webhook.")

    payload = {
        "reportType": report_type,
        "summary": {
            "success": summary.success_count,
            "error": summary.error_count,
            "total": summary.total_count,
        },
        "errors": [
            r.model_dump(mode="json")
            for r in summary.results
            if r.status is ResultStatus.ERROR
        ],
        "metadata": metadata,
    }

    try:
        response = requests.post(
            settings.WEBHOOK_URL, json=payload, timeout=settings.REQUEST_TIMEOUT
        )
        response.raise_for_status()
        logger.info("✅ Summary successfully posted to webhook.")
        return True
    except requests.exceptions.RequestException as e:
        logger.error(f"❌ Error posting to webhook: {e}")
        return False
