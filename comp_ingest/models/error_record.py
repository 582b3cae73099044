from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""Error models for import runs.

RowError is the line-addressable entry carried in progress/completion
messages. ErrorRecord is the JSON Lines form written to the operator error
log; it adds a timestamp and the upload name.

row = -1 is accepted for upload-level errors where no row applies.
"""

__all__ = [
    "FILE_LEVEL_ROW",
    "RowError",
    "ErrorRecord",
]

FILE_LEVEL_ROW = -1


@dataclass(frozen=True)
class RowError:
    """A single row-recoverable failure.

    Attributes:
        row: 1-based sheet row number including the header line (position + 2)
        field: Field name the error relates to ("general" for persistence failures)
        message: Human readable description
    """
    row: int
    field: str
    message: str

    def to_dict(self) -> dict[str, object]:
        return {"row": self.row, "field": self.field, "message": self.message}


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        upload: Name of the uploaded file
        row: Row number, -1 when unknown
        field: Field name
        message: Error description
    """
    timestamp: str  # ISO8601 UTC
    upload: str
    row: int
    field: str
    message: str

    @staticmethod
    def create(upload: str, row: int, field: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(timestamp=ts, upload=upload, row=row, field=field, message=message)

    @staticmethod
    def from_row_error(upload: str, error: RowError) -> ErrorRecord:
        return ErrorRecord.create(upload=upload, row=error.row, field=error.field, message=error.message)

    def to_json_line(self) -> str:
        # dataclass -> dict keeps the key set fixed
        return json.dumps(asdict(self), ensure_ascii=False)
