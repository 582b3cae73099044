from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import replace
from datetime import UTC, datetime

from ..models.employee import BenefitPlan, DerivedFields, EmployeeRecord, SalaryBand
from .store import DuplicateEmailError

"""In-memory EmployeeStore.

Same semantics as the PostgreSQL store (upsert key, unique email, active
lookups) behind a single lock. Used by the test-suite and by the CLI when
no database is reachable (mock mode).
"""

__all__ = ["MemoryEmployeeStore"]


class MemoryEmployeeStore:
    def __init__(
        self,
        organization_id: str = "default",
        *,
        bands: Iterable[SalaryBand] = (),
        benefits: Iterable[BenefitPlan] = (),
    ) -> None:
        self.organization_id = organization_id
        self._lock = threading.RLock()
        self._employees: dict[str, EmployeeRecord] = {}
        self._bands: list[SalaryBand] = list(bands)
        self._benefits: list[BenefitPlan] = list(benefits)
        self._enrollments: set[tuple[str, str]] = set()
        # insight id -> expiry
        self.ai_insights: dict[str, datetime | None] = {}

    # -- employees --------------------------------------------------------
    def upsert_employee(self, record: EmployeeRecord, preserve_fields: Iterable[str] = ()) -> EmployeeRecord:
        with self._lock:
            existing = self._employees.get(record.employee_id)
            if existing is not None:
                kept = {name: getattr(existing, name) for name in preserve_fields}
                # derived fields survive until the calculator runs again
                record = replace(
                    record,
                    job_area=record.job_area or existing.job_area,
                    compa_ratio=existing.compa_ratio,
                    pay_range_penetration=existing.pay_range_penetration,
                    time_in_current_grade=existing.time_in_current_grade,
                    **kept,
                )
            for other in self._employees.values():
                if other.employee_id != record.employee_id and other.email == record.email:
                    raise DuplicateEmailError(record.email)
            self._employees[record.employee_id] = record
            return record

    def delete_all(self) -> int:
        with self._lock:
            removed = len(self._employees)
            self._employees.clear()
            self._enrollments.clear()
            return removed

    def get_employee(self, employee_id: str) -> EmployeeRecord | None:
        with self._lock:
            return self._employees.get(employee_id)

    def count_employees(self) -> int:
        with self._lock:
            return len(self._employees)

    def find_active_employee_id_by_email(self, email: str) -> str | None:
        with self._lock:
            for rec in self._employees.values():
                if rec.email == email and rec.is_active:
                    return rec.employee_id
        return None

    def update_derived(self, employee_id: str, derived: DerivedFields) -> None:
        with self._lock:
            rec = self._employees.get(employee_id)
            if rec is not None:
                self._employees[employee_id] = rec.with_derived(derived)

    def active_employee_ids_for_band(self, band_code: str) -> list[str]:
        with self._lock:
            return [r.employee_id for r in self._employees.values() if r.band == band_code and r.is_active]

    # -- salary bands -----------------------------------------------------
    def find_salary_band(self, band_code: str, job_area: str | None = None) -> SalaryBand | None:
        with self._lock:
            candidates = [b for b in self._bands if b.band_code == band_code]
        if job_area:
            for band in candidates:
                if band.job_area == job_area:
                    return band
        unscoped = [b for b in candidates if b.job_area is None]
        if unscoped:
            return unscoped[0]
        return candidates[0] if candidates else None

    def save_salary_band(self, band: SalaryBand) -> SalaryBand:
        with self._lock:
            self._bands = [
                b for b in self._bands if (b.band_code, b.job_area) != (band.band_code, band.job_area)
            ]
            self._bands.append(band)
        return band

    # -- insights / benefits ---------------------------------------------
    def expire_ai_insights(self) -> int:
        now = datetime.now(UTC)
        with self._lock:
            for key in self.ai_insights:
                self.ai_insights[key] = now
            return len(self.ai_insights)

    def list_active_benefits(self) -> list[BenefitPlan]:
        with self._lock:
            return [b for b in self._benefits if b.is_active]

    def enroll_benefit(self, employee_id: str, benefit_id: str) -> bool:
        key = (employee_id, benefit_id)
        with self._lock:
            if key in self._enrollments:
                return False
            self._enrollments.add(key)
            return True

    def enrollments_for(self, employee_id: str) -> set[str]:
        with self._lock:
            return {b for e, b in self._enrollments if e == employee_id}
