from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from datetime import date

from ..db.store import IDENTITY_FIELDS, EmployeeStore
from ..models.employee import VALID_EMPLOYMENT_TYPES, VALID_WORK_MODES, EmployeeRecord, ImportMode
from ..models.error_record import RowError
from ..models.import_result import ImportRunAccumulator
from ..models.rows import RepairedRow
from .derived import DerivedFieldCalculator
from .notifications import NotificationHub

"""Reconciliation writer: RepairedRows -> stored EmployeeRecords.

Rows are written one at a time in upload order, grouped into sub-batches
for progress reporting. Each row is its own unit of work: a failure is
recorded as ``(row_number, "general", message)`` and the next row proceeds.

Replace mode deletes every record of the organization before the first
write. A failure of that delete is fatal to the run and propagates.
"""

__all__ = [
    "GENERAL_FIELD",
    "BASIC_RATIO",
    "HRA_RATIO",
    "LTA_RATIO",
    "PF_RATIO",
    "DEFAULT_VARIABLE_RATIO",
    "build_employee_record",
    "ReconciliationWriter",
]

logger = logging.getLogger(__name__)

GENERAL_FIELD = "general"

# Salary structure as shares of annual fixed pay (PF is a share of basic)
BASIC_RATIO = 0.35
HRA_RATIO = 0.20
LTA_RATIO = 0.05
PF_RATIO = 0.12
DEFAULT_VARIABLE_RATIO = 0.10


def build_employee_record(row: RepairedRow, store: EmployeeStore) -> EmployeeRecord:
    """Turn a repaired row into the record to persist.

    The reporting manager is linked only when an ACTIVE employee holds the
    given email; otherwise the link stays empty.
    """
    fixed = row.annual_fixed
    basic = fixed * BASIC_RATIO
    hra = fixed * HRA_RATIO
    lta = fixed * LTA_RATIO
    pf = basic * PF_RATIO
    variable = row.variable_pay if row.variable_pay > 0 else fixed * DEFAULT_VARIABLE_RATIO
    ctc = row.annual_ctc if row.annual_ctc > 0 else fixed + variable + pf

    manager_id = None
    if row.reporting_manager_email:
        manager_id = store.find_active_employee_id_by_email(row.reporting_manager_email)

    return EmployeeRecord(
        employee_id=row.employee_id,
        first_name=row.first_name,
        last_name=row.last_name,
        email=row.email,
        department=row.department,
        designation=row.designation,
        date_of_joining=date.fromisoformat(row.date_of_joining),
        gender=row.gender,
        band=row.band,
        grade=row.grade,
        annual_fixed=fixed,
        variable_pay=variable,
        annual_ctc=ctc,
        basic_annual=basic,
        hra_annual=hra,
        lta_annual=lta,
        pf_annual=pf,
        special_allowance=fixed - basic - hra - lta,
        monthly_gross=fixed / 12,
        work_mode=row.work_mode if row.work_mode in VALID_WORK_MODES else "HYBRID",
        work_location=row.work_location,
        employment_type=row.employment_type if row.employment_type in VALID_EMPLOYMENT_TYPES else "FULL_TIME",
        cost_center=row.cost_center,
        reporting_manager_id=manager_id,
    )


class ReconciliationWriter:
    """Writes repaired rows and reports progress at sub-batch boundaries."""

    def __init__(
        self,
        store: EmployeeStore,
        hub: NotificationHub,
        calculator: DerivedFieldCalculator,
        *,
        batch_size: int = 10,
    ) -> None:
        self._store = store
        self._hub = hub
        self._calculator = calculator
        self._batch_size = max(1, batch_size)

    def write(
        self,
        rows: Sequence[RepairedRow],
        mode: ImportMode,
        accumulator: ImportRunAccumulator,
        cancel_token: threading.Event | None = None,
    ) -> ImportRunAccumulator:
        """Write ``rows`` into the store, updating ``accumulator`` as it goes.

        Args:
            rows: Repaired rows in upload order
            mode: UPSERT or REPLACE
            accumulator: Run counters (total must equal len(rows))
            cancel_token: When set, the run stops at the next sub-batch boundary

        Raises:
            StoreError: replace-mode delete failed (nothing was written)
        """
        if mode is ImportMode.REPLACE:
            removed = self._store.delete_all()
            logger.info("replace mode: removed %d existing records", removed)

        for start in range(0, len(rows), self._batch_size):
            if cancel_token is not None and cancel_token.is_set():
                accumulator.cancelled = True
                logger.info("import cancelled after %d of %d rows", accumulator.processed, len(rows))
                break
            for row in rows[start:start + self._batch_size]:
                self._write_row(row, accumulator)
            progress = accumulator.progress()
            self._hub.publish(progress.event, progress.to_message())
        return accumulator

    def _write_row(self, row: RepairedRow, accumulator: ImportRunAccumulator) -> None:
        try:
            record = build_employee_record(row, self._store)
            stored = self._store.upsert_employee(record, preserve_fields=row.synthesized & IDENTITY_FIELDS)
            self._calculator.recompute_record(stored)
        except Exception as e:
            self._fail(row, str(e) or type(e).__name__, accumulator)
        else:
            accumulator.record_success(stored.employee_id)

    def _fail(self, row: RepairedRow, message: str, accumulator: ImportRunAccumulator) -> None:
        accumulator.record_failure(RowError(row=row.row_number, field=GENERAL_FIELD, message=message))
        logger.warning("Row %d failed: %s", row.row_number, message)
