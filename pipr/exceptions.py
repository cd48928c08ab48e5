from typing import Optional


class PiprError(Exception):
    """Base class for every error raised by the bulk stock update."""


class CsvSchemaError(PiprError):
    """The file as a whole is unusable: wrong type, empty, or missing required columns."""


class CsvRowError(PiprError):
    """A data row failed validation. Aborts the whole batch before any update."""

    def __init__(self, line_number: int, reason: str):
        self.line_number = line_number
        self.reason = reason
        super().__init__(f"Line {line_number}: {reason}")


class FacilityResolutionError(PiprError):
    """The caller's CEDI could not be determined, so no row can be processed."""


class BackendError(PiprError):
    """A remote call failed at the transport level or was rejected by the backend."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
