from enum import Enum
from typing import Optional

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from . import settings


class MovementType(str, Enum):
    IN = "IN"
    OUT = "OUT"
    ADJUSTMENT = "ADJUSTMENT"


class ResultStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class StockUpdateRow(BaseModel):
    """
    One validated line of the bulk update file.
    `new_stock` is an absolute level for ADJUSTMENT and a quantity for IN/OUT.
    """

    model_config = ConfigDict(frozen=True)

    sku: str = Field(..., min_length=1)
    new_stock: float = Field(..., ge=0, allow_inf_nan=False)
    movement_type: MovementType
    notes: str = ""
    # 1-based line in the source file; the header is line 1.
    line_number: int = Field(..., ge=2)

    @field_validator("sku")
    @classmethod
    def normalize_sku(cls, value: str) -> str:
        return value.strip().upper()


class InventoryItem(BaseModel):
    """An article of a CEDI's local catalog, as stored by the backend."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    sku: str
    facility_id: int = Field(..., alias="cedi_id")
    current_stock: float = 0


class StockMutationOutcome(BaseModel):
    """Reply of the `update_article_stock` remote procedure."""

    success: bool
    new_stock: Optional[float] = None
    message: Optional[str] = None


class ProcessingResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    row: int
    sku: str
    status: ResultStatus
    message: str
    old_stock: Optional[float] = None
    new_stock: Optional[float] = None

    @model_validator(mode="after")
    def check_new_stock_only_on_success(self):
        if self.status is not ResultStatus.SUCCESS and self.new_stock is not None:
            raise ValueError("new_stock is only reported for successful rows")
        return self


class ResultSummary(BaseModel):
    """Tally of a finished batch. Counts are derived from `results`, never set by hand."""

    success_count: int = 0
    error_count: int = 0
    total_count: int = 0
    results: list[ProcessingResult] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_counts_add_up(self):
        if self.success_count + self.error_count != self.total_count:
            raise ValueError("success_count + error_count must equal total_count")
        return self

    @classmethod
    def from_results(cls, results: list[ProcessingResult]) -> "ResultSummary":
        success_count = sum(1 for r in results if r.status is ResultStatus.SUCCESS)
        error_count = sum(1 for r in results if r.status is ResultStatus.ERROR)
        return cls(
            success_count=success_count,
            error_count=error_count,
            total_count=len(results),
            results=list(results),
        )

    def to_dataframe(self) -> pd.DataFrame:
        records = [r.model_dump(mode="json") for r in self.results]
        return pd.DataFrame(records, columns=settings.RESULT_COLUMNS)
