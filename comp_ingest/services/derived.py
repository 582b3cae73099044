from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, date, datetime

from ..db.store import EmployeeStore
from ..models.employee import DerivedFields, EmployeeRecord, SalaryBand

"""Derived compensation metrics.

compa_ratio            annual_fixed / band mid * 100
pay_range_penetration  (annual_fixed - band min) / (band max - band min) * 100
time_in_current_grade  whole calendar months since date_of_joining

The band configuration scoped to the employee's job area is preferred over
the generic one for the band code. Recomputing twice gives the same result.
"""

__all__ = [
    "months_between",
    "compute_derived",
    "DerivedFieldCalculator",
]

logger = logging.getLogger(__name__)


def _today() -> date:
    return datetime.now(UTC).date()


def months_between(start: date, end: date) -> int:
    """Whole calendar months from ``start`` to ``end``; 0 when end is earlier."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return max(months, 0)


def compute_derived(record: EmployeeRecord, band: SalaryBand | None, today: date) -> DerivedFields:
    compa_ratio: float | None = None
    penetration: float | None = None
    if band is not None:
        if band.mid_salary:
            compa_ratio = round(record.annual_fixed / band.mid_salary * 100, 2)
        spread = band.max_salary - band.min_salary
        if spread > 0:
            penetration = round((record.annual_fixed - band.min_salary) / spread * 100, 2)
    return DerivedFields(
        compa_ratio=compa_ratio,
        pay_range_penetration=penetration,
        time_in_current_grade=months_between(record.date_of_joining, today),
    )


class DerivedFieldCalculator:
    """Recompute and persist the derived fields of stored records."""

    def __init__(self, store: EmployeeStore, today: Callable[[], date] = _today) -> None:
        self._store = store
        self._today = today

    def recompute(self, employee_id: str) -> DerivedFields | None:
        """Returns None when the employee does not exist (e.g. deleted mid-run)."""
        record = self._store.get_employee(employee_id)
        if record is None:
            logger.debug("recompute skipped, employee not found id=%s", employee_id)
            return None
        return self.recompute_record(record)

    def recompute_record(self, record: EmployeeRecord) -> DerivedFields:
        band = self._store.find_salary_band(record.band, record.job_area)
        derived = compute_derived(record, band, self._today())
        self._store.update_derived(record.employee_id, derived)
        return derived
