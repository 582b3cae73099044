from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from ..canonical.headers import canonicalize_rows
from ..canonical.repair import RepairContext, repair_rows
from ..canonical.values import normalize_rows
from ..db.store import EmployeeStore, StoreError
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import ImportSettings
from ..models.employee import ImportMode
from ..models.error_record import FILE_LEVEL_ROW, ErrorRecord, RowError
from ..models.import_result import ImportAccepted, ImportRunAccumulator, ImportRunResult
from ..models.rows import NormalizedRow
from ..tabular.decoder import UploadRejectedError, decode_upload
from .benefits import EnrollmentOutcome, auto_enroll_benefits
from .derived import DerivedFieldCalculator
from .fanout import CacheInvalidationOutcome, CacheInvalidator
from .notifications import NotificationHub
from .writer import ReconciliationWriter

"""Import orchestration.

prepare_upload() runs synchronously in the caller: decode, canonicalize and
normalize, then reject empty or oversized uploads. Nothing has been written
when it raises.

run_import() is the background part: repair, write, benefit enrollment,
cache invalidation, error log flush, then exactly one completion message.
start_import() does both and hands back an acknowledgment plus a job handle.
"""

__all__ = [
    "EmptyUploadError",
    "TooManyRowsError",
    "PreparedUpload",
    "ImportDependencies",
    "ImportRunReport",
    "ImportJob",
    "prepare_upload",
    "run_import",
    "start_import",
    "acceptance_message",
]

logger = logging.getLogger(__name__)


class EmptyUploadError(UploadRejectedError):
    code = "EMPTY_FILE"


class TooManyRowsError(UploadRejectedError):
    code = "TOO_LARGE"


@dataclass(frozen=True)
class PreparedUpload:
    upload_name: str
    columns: tuple[str, ...]
    rows: tuple[NormalizedRow, ...]
    source_format: str
    sheet_name: str | None = None

    @property
    def total(self) -> int:
        return len(self.rows)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class ImportDependencies:
    """Collaborators of a run. ``clock`` is the run's notion of "now"."""
    store: EmployeeStore
    hub: NotificationHub = field(default_factory=NotificationHub)
    cache: CacheInvalidator = field(default_factory=CacheInvalidator)
    settings: ImportSettings = field(default_factory=ImportSettings)
    clock: Callable[[], datetime] = _utcnow


@dataclass(frozen=True)
class ImportRunReport:
    """Run result plus the best-effort side effects that followed it."""
    result: ImportRunResult
    skipped_rows: int = 0
    enrollment: EnrollmentOutcome = field(default_factory=EnrollmentOutcome)
    cache: CacheInvalidationOutcome = field(default_factory=CacheInvalidationOutcome)
    error_log_path: Path | None = None


def prepare_upload(
    data: bytes,
    content_type: str | None = None,
    settings: ImportSettings | None = None,
    *,
    upload_name: str = "upload",
) -> PreparedUpload:
    """Decode and normalize an upload.

    Raises:
        InvalidFormatError: the bytes are not a readable CSV / spreadsheet
        EmptyUploadError: no data rows remain after blank-row removal
        TooManyRowsError: more than ``settings.max_rows`` data rows
    """
    settings = settings or ImportSettings()
    if not data:
        raise EmptyUploadError("The uploaded file contains no data rows.")
    table = decode_upload(data, content_type)
    if not table.rows:
        raise EmptyUploadError("The uploaded file contains no data rows.")
    if len(table.rows) > settings.max_rows:
        raise TooManyRowsError(
            f"File exceeds {settings.max_rows} rows limit. Please split into smaller files."
        )
    rows = normalize_rows(canonicalize_rows(table.rows), settings.date_order)
    logger.debug(
        "prepared upload=%s format=%s sheet=%s rows=%d columns=%s",
        upload_name, table.source_format, table.sheet_name, len(rows), table.columns,
    )
    return PreparedUpload(
        upload_name=upload_name,
        columns=tuple(table.columns),
        rows=tuple(rows),
        source_format=table.source_format,
        sheet_name=table.sheet_name,
    )


def acceptance_message(total: int, mode: ImportMode) -> str:
    suffix = " (replace mode: existing data will be cleared)" if mode is ImportMode.REPLACE else ""
    return f"Processing {total} employees{suffix}. Watch progress via real-time updates."


def _flush_error_log(upload_name: str, errors: tuple[RowError, ...], log_dir: str | None) -> Path | None:
    if not errors or not log_dir:
        return None
    buffer = ErrorLogBuffer(Path(log_dir))
    for error in errors:
        buffer.append(ErrorRecord.from_row_error(upload_name, error))
    try:
        return buffer.flush()
    except OSError as e:
        # The run result already carries the errors
        logger.warning("failed to write error log: %s", e)
        return None


def run_import(
    prepared: PreparedUpload,
    mode: ImportMode,
    deps: ImportDependencies,
    cancel_token: threading.Event | None = None,
) -> ImportRunReport:
    """Run the write phase of an import.

    Raises:
        StoreError: replace-mode delete failed; a completion carrying a
            file-level error (row -1) is published before re-raising
    """
    started = deps.clock()
    settings = deps.settings
    context = RepairContext(
        run_started=started,
        email_domain=settings.email_domain,
        fallback_annual_fixed=settings.fallback_annual_fixed,
    )
    repaired = repair_rows(prepared.rows, context)
    skipped = prepared.total - len(repaired)
    if skipped:
        logger.info("skipped %d functionally empty rows", skipped)

    accumulator = ImportRunAccumulator(
        len(repaired),
        replaced=mode is ImportMode.REPLACE,
        detected_columns=prepared.columns,
    )
    calculator = DerivedFieldCalculator(deps.store, today=lambda: deps.clock().date())
    writer = ReconciliationWriter(deps.store, deps.hub, calculator, batch_size=settings.batch_size)
    try:
        writer.write(repaired, mode, accumulator, cancel_token)
    except StoreError as e:
        accumulator.abort(RowError(FILE_LEVEL_ROW, "general", f"Replace failed: {e}"))
        result = accumulator.finish()
        _flush_error_log(prepared.upload_name, result.errors, settings.error_log_dir)
        deps.hub.publish(result.event, result.to_message())
        raise

    enrollment = auto_enroll_benefits(deps.store, accumulator.imported_ids, today=deps.clock().date())
    cache = deps.cache.invalidate_after_import(deps.store)

    result = accumulator.finish()
    log_path = _flush_error_log(prepared.upload_name, result.errors, settings.error_log_dir)
    logger.info(
        "import finished upload=%s imported=%d failed=%d total=%d replaced=%s cancelled=%s",
        prepared.upload_name, result.imported, result.failed, result.total, result.replaced, result.cancelled,
    )
    deps.hub.publish(result.event, result.to_message())
    return ImportRunReport(
        result=result,
        skipped_rows=skipped,
        enrollment=enrollment,
        cache=cache,
        error_log_path=log_path,
    )


class ImportJob:
    """Handle on a background import run."""

    def __init__(self, future: Future[ImportRunReport], cancel_token: threading.Event) -> None:
        self._future = future
        self.cancel_token = cancel_token

    def cancel(self) -> None:
        """Ask the run to stop at the next sub-batch boundary."""
        self.cancel_token.set()

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: float | None = None) -> ImportRunReport:
        return self._future.result(timeout=timeout)


def _log_job_failure(future: Future[ImportRunReport]) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("import processing error: %s", exc, exc_info=exc)


def start_import(
    data: bytes,
    content_type: str | None,
    mode: ImportMode | str | None,
    deps: ImportDependencies,
    *,
    upload_name: str = "upload",
    executor: Executor | None = None,
) -> tuple[ImportAccepted, ImportJob]:
    """Validate an upload synchronously, then run the import in the background.

    Raises:
        UploadRejectedError: see prepare_upload(); nothing was started
    """
    mode = ImportMode.parse(mode)
    prepared = prepare_upload(data, content_type, deps.settings, upload_name=upload_name)
    accepted = ImportAccepted(
        total=prepared.total,
        mode=mode.value,
        message=acceptance_message(prepared.total, mode),
    )

    cancel_token = threading.Event()
    own_executor = executor is None
    pool = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="comp-import")
    future = pool.submit(run_import, prepared, mode, deps, cancel_token)
    future.add_done_callback(_log_job_failure)
    if own_executor:
        # already-submitted work still runs to completion
        pool.shutdown(wait=False)
    return accepted, ImportJob(future, cancel_token)
