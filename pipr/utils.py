import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from .exceptions import CsvSchemaError

logger = logging.getLogger(__name__)


def get_date_suffix_for_filename() -> str:
    """Returns the current timestamp as a YYYY-MM-DD_HHMMSS string for filenames."""
    return datetime.now().strftime("%Y-%m-%d_%H%M%S")


def batch_timestamp_ms() -> int:
    """Epoch milliseconds; used to build per-row reference ids for a batch."""
    return int(time.time() * 1000)


def format_quantity(value: Optional[float]) -> str:
    """Renders stock figures the way users typed them: 10 instead of 10.0."""
    if value is None:
        return "-"
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def read_csv_text(file_path: Path) -> str:
    """
    Reads an uploaded CSV with an encoding fallback.
    1. UTF-8 with BOM support ('utf-8-sig'), which is what spreadsheet exports use.
    2. Latin-1, which never fails to decode but may misread accented characters.
    """
    file_path = Path(file_path)
    if file_path.suffix.lower() != ".csv":
        raise CsvSchemaError(f"{file_path.name} is not a CSV file")

    try:
        return file_path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError:
        logger.info(
            f"UTF-8 decoding failed for {file_path.name}. Retrying with 'latin-1'."
        )
        return file_path.read_text(encoding="latin-1")
    except FileNotFoundError:
        raise CsvSchemaError(f"CSV file not found: {file_path}") from None
    except OSError as e:
        raise CsvSchemaError(f"Could not read {file_path}: {e}") from e
