from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from ..models.employee import BenefitPlan, DerivedFields, EmployeeRecord, SalaryBand

"""Persistent store interface used by the writer and the recompute services.

Two implementations: PostgresEmployeeStore (psycopg2) and MemoryEmployeeStore
(tests / mock mode). Both scope every operation to one organization.
"""

__all__ = [
    "IDENTITY_FIELDS",
    "StoreError",
    "DuplicateEmailError",
    "EmployeeStore",
]

# Fields an update keeps from the stored record when the new value was synthesized
IDENTITY_FIELDS: frozenset[str] = frozenset({"first_name", "last_name", "email"})


class StoreError(Exception):
    """A store operation failed. The message is safe to show per row."""


class DuplicateEmailError(StoreError):
    def __init__(self, email: str) -> None:
        super().__init__(f"Duplicate email: {email}")
        self.email = email


class EmployeeStore(Protocol):
    organization_id: str

    def upsert_employee(self, record: EmployeeRecord, preserve_fields: Iterable[str] = ()) -> EmployeeRecord:
        """Create or update by employee_id; return the stored record.

        For an existing record, attributes named in ``preserve_fields`` keep
        their stored value.

        Raises:
            DuplicateEmailError: the email belongs to another employee_id
            StoreError: any other write failure
        """
        ...

    def delete_all(self) -> int: ...

    def get_employee(self, employee_id: str) -> EmployeeRecord | None: ...

    def count_employees(self) -> int: ...

    def find_active_employee_id_by_email(self, email: str) -> str | None: ...

    def find_salary_band(self, band_code: str, job_area: str | None = None) -> SalaryBand | None: ...

    def save_salary_band(self, band: SalaryBand) -> SalaryBand: ...

    def update_derived(self, employee_id: str, derived: DerivedFields) -> None: ...

    def active_employee_ids_for_band(self, band_code: str) -> list[str]: ...

    def expire_ai_insights(self) -> int: ...

    def list_active_benefits(self) -> list[BenefitPlan]: ...

    def enroll_benefit(self, employee_id: str, benefit_id: str) -> bool:
        """Enroll once; False when the enrollment already existed."""
        ...
