from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from .error_record import RowError

"""Run result and message models for the import pipeline.

ImportRunResult is produced exactly once per run. ImportProgress snapshots are
published at sub-batch boundaries while the run accumulates; both are built
from ImportRunAccumulator, which only ever grows.
"""

__all__ = [
    "IMPORT_PROGRESS_EVENT",
    "IMPORT_COMPLETE_EVENT",
    "ImportAccepted",
    "ImportProgress",
    "ImportRunResult",
    "ImportRunAccumulator",
]

IMPORT_PROGRESS_EVENT = "import:progress"
IMPORT_COMPLETE_EVENT = "import:complete"


@dataclass(frozen=True)
class ImportAccepted:
    """Acknowledgment returned to the caller before the background run starts."""
    total: int
    mode: str
    message: str


@dataclass(frozen=True)
class ImportProgress:
    processed: int
    total: int
    errors: tuple[RowError, ...] = ()

    event = IMPORT_PROGRESS_EVENT

    def to_message(self) -> dict[str, object]:
        return {
            "processed": self.processed,
            "total": self.total,
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass(frozen=True)
class ImportRunResult:
    """Terminal outcome of one import run (also the completion message)."""
    imported: int
    failed: int
    errors: tuple[RowError, ...]
    replaced: bool
    detected_columns: tuple[str, ...]
    total: int
    start_time: datetime
    end_time: datetime
    cancelled: bool = False
    imported_ids: tuple[str, ...] = field(default=(), repr=False)

    event = IMPORT_COMPLETE_EVENT

    @property
    def elapsed_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()

    def to_message(self) -> dict[str, object]:
        return {
            "imported": self.imported,
            "failed": self.failed,
            "errors": [e.to_dict() for e in self.errors],
            "replaced": self.replaced,
            "detectedColumns": list(self.detected_columns),
            "total": self.total,
            "cancelled": self.cancelled,
        }


class ImportRunAccumulator:
    """Monotonic counters for a run in progress.

    Counts and the error list only grow; snapshots handed to subscribers are
    immutable copies so a later append never alters an earlier message.
    """

    def __init__(self, total: int, *, replaced: bool, detected_columns: list[str] | tuple[str, ...]) -> None:
        self.total = total
        self.replaced = replaced
        self.detected_columns = tuple(detected_columns)
        self.start_time = datetime.now(UTC)
        self.processed = 0
        self.imported = 0
        self.failed = 0
        self.cancelled = False
        self._errors: list[RowError] = []
        self._imported_ids: list[str] = []

    @property
    def errors(self) -> tuple[RowError, ...]:
        return tuple(self._errors)

    @property
    def imported_ids(self) -> tuple[str, ...]:
        return tuple(self._imported_ids)

    def record_success(self, employee_id: str) -> None:
        self.processed += 1
        self.imported += 1
        self._imported_ids.append(employee_id)

    def record_failure(self, error: RowError) -> None:
        self.processed += 1
        self.failed += 1
        self._errors.append(error)

    def abort(self, error: RowError) -> None:
        """Close a run that failed before any row was written.

        total drops to the processed count so imported + failed == total
        still holds for the completion message.
        """
        self.total = self.processed
        self._errors.append(error)

    def progress(self) -> ImportProgress:
        return ImportProgress(processed=self.processed, total=self.total, errors=self.errors)

    def finish(self) -> ImportRunResult:
        return ImportRunResult(
            imported=self.imported,
            failed=self.failed,
            errors=self.errors,
            replaced=self.replaced,
            detected_columns=self.detected_columns,
            total=self.total,
            start_time=self.start_time,
            end_time=datetime.now(UTC),
            cancelled=self.cancelled,
            imported_ids=self.imported_ids,
        )
