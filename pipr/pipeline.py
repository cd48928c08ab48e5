import logging
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)


class DataPipeline(ABC):
    """
    Abstract base class for batch pipelines.
    Follows an Extract -> Transform -> Load (ETL) pattern.

    Fatal errors raised by any stage propagate out of run(); a stage that
    raises means later stages never start, so nothing is half-applied by
    the pipeline itself.
    """

    def __init__(self, report_type: str, test_mode: bool = False):
        self.report_type = report_type
        self.test_mode = test_mode

    def run(self) -> Any:
        """
        Orchestrates the pipeline execution and returns whatever load() produces.
        """
        logger.info(f"🚀 STEP: {self.report_type.upper()}")
        logger.info("-" * 30)

        # --- 1. EXTRACT ---
        raw_data = self.extract()

        # --- 2. TRANSFORM ---
        processed = self.transform(raw_data)

        # --- 3. LOAD ---
        output = self.load(processed)

        logger.info(f"✅ {self.report_type.capitalize()} Pipeline Finished.\n")
        logger.info("=" * 60)
        return output

    @abstractmethod
    def extract(self) -> Any:
        """
        Reads and validates the input. Raises on anything that must stop the batch.
        """

    @abstractmethod
    def transform(self, data: Any) -> Any:
        """
        Applies the validated input and returns per-item outcomes.
        """

    @abstractmethod
    def load(self, processed: Any) -> Any:
        """
        Summarizes, persists and publishes the outcomes.
        """
