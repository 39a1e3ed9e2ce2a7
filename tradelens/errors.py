"""Exception taxonomy for the import and summary paths.

Per-row and per-span failures (``CSVRowInvalid``, ``DateParseFailure``) are
raised inside the parsers and recovered at the batch loop; only file-level
failures and empty result sets reach the caller.
"""

from __future__ import annotations

from typing import Iterable


class TradeLensError(Exception):
    """Root of every error raised by the tradelens core."""


# ---------------------------------------------------------------------------
# Recognition collaborator
# ---------------------------------------------------------------------------


class RecognitionError(TradeLensError):
    """The text-recognition collaborator could not produce text for an image."""


class InvalidImage(RecognitionError):
    def __init__(self, message: str = "Image could not be decoded") -> None:
        super().__init__(message)


class NoTextRecognized(RecognitionError):
    def __init__(self, message: str = "No text recognized in image") -> None:
        super().__init__(message)


# ---------------------------------------------------------------------------
# Extraction / import
# ---------------------------------------------------------------------------


class NoValidRecordExtracted(TradeLensError):
    """Extraction ran but no record passed validation."""

    def __init__(
        self,
        message: str = "No valid trade record could be extracted",
        *,
        total_rows: int = 0,
        skipped_rows: int = 0,
    ) -> None:
        super().__init__(message)
        self.total_rows = total_rows
        self.skipped_rows = skipped_rows


class CSVImportError(TradeLensError):
    pass


class CSVMissingRequiredColumns(CSVImportError):
    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = sorted(missing)
        super().__init__(f"CSV header is missing required columns: {', '.join(self.missing)}")


class CSVRowInvalid(CSVImportError):
    def __init__(self, row_number: int, reason: str) -> None:
        super().__init__(f"Row {row_number}: {reason}")
        self.row_number = row_number
        self.reason = reason


class DateParseFailure(TradeLensError, ValueError):
    def __init__(self, text: str) -> None:
        super().__init__(f"Unrecognized date/time: {text!r}")
        self.text = text


# ---------------------------------------------------------------------------
# Summary collaborator
# ---------------------------------------------------------------------------


class SummaryServiceError(TradeLensError):
    """Network, HTTP or decode failure (or empty text) from the summary service."""
