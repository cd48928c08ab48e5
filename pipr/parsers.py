import logging
import math
import re
from typing import Optional

import pandas as pd
from pydantic import ValidationError

from . import settings
from .exceptions import CsvRowError, CsvSchemaError
from .schemas import MovementType, StockUpdateRow

logger = logging.getLogger(__name__)


# Plain ASCII decimal notation; float() alone would also take "1_000" or non-ASCII digits.
QUANTITY_PATTERN = re.compile(r"[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?")


def _parse_quantity(raw: str) -> Optional[float]:
    """Strict numeric parse: '12', '12.5' and '1e3' pass, '12abc', '1_000' and 'inf' do not."""
    if raw is None or not QUANTITY_PATTERN.fullmatch(raw):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value


def _split_header(line: str) -> list[str]:
    return [h.strip().lower() for h in line.split(",")]


def _split_values(line: str, width: int) -> list[str]:
    """Splits a data line and pads/truncates it to the header width."""
    values = [v.strip() for v in line.split(",")]
    values = values[:width]
    return values + [""] * (width - len(values))


def validate_row(
    values: dict[str, str], line_number: int
) -> tuple[Optional[StockUpdateRow], Optional[str]]:
    """
    Validates one raw row keyed by header name.
    Returns (row, None) on success or (None, reason) on failure; never raises.
    """
    movement = (values.get("movement_type") or "").upper()
    if movement not in settings.MOVEMENT_TYPES:
        return None, (
            "invalid movement_type "
            f"'{values.get('movement_type', '')}'. Use: {', '.join(settings.MOVEMENT_TYPES)}"
        )

    quantity = _parse_quantity(values.get("new_stock", ""))
    if quantity is None or quantity < 0:
        return None, "new_stock must be a number greater than or equal to 0"

    sku = (values.get("sku") or "").upper()
    if not sku:
        return None, "sku is required"

    try:
        row = StockUpdateRow(
            sku=sku,
            new_stock=quantity,
            movement_type=MovementType(movement),
            notes=values.get("notes") or "",
            line_number=line_number,
        )
    except ValidationError as e:
        return None, str(e.errors()[0]["msg"])
    return row, None


def parse_stock_csv(text: str) -> list[StockUpdateRow]:
    """
    Parses the bulk update file into validated rows.

    All-or-nothing: a missing column or the first invalid row raises before
    anything is returned, so no stock is touched for a partially bad file.
    Blank lines are dropped before numbering, so line numbers count non-blank
    lines with the header as line 1.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        raise CsvSchemaError("CSV file is empty")

    headers = _split_header(lines[0])
    missing = [col for col in settings.REQUIRED_COLUMNS if col not in headers]
    if missing:
        raise CsvSchemaError(f"Missing required columns: {', '.join(missing)}")

    if len(lines) == 1:
        raise CsvSchemaError("CSV file contains no data rows")

    # Name-indexed view of the raw rows; every cell stays a string until validated.
    raw_df = pd.DataFrame(
        [_split_values(line, len(headers)) for line in lines[1:]],
        columns=headers,
        dtype=str,
    )
    # Duplicate header names: the right-most column wins.
    raw_df = raw_df.loc[:, ~raw_df.columns.duplicated(keep="last")]

    rows = []
    for line_number, record in enumerate(raw_df.to_dict("records"), start=2):
        row, error = validate_row(record, line_number)
        if error is not None:
            raise CsvRowError(line_number, error)
        rows.append(row)

    logger.info(f"✅ Parsed {len(rows)} stock update rows.")
    return rows
