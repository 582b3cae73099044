from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime

from ..db.store import EmployeeStore, StoreError
from ..models.employee import BenefitPlan, EmployeeRecord, band_level
from .derived import months_between

"""Benefit auto-enrollment after an import.

Every imported employee is enrolled into each active benefit whose
eligibility criteria it meets. Benefits gated on a performance rating are
skipped: freshly imported employees have no rating yet. Enrollment is
idempotent and best-effort; failures land in EnrollmentOutcome.
"""

__all__ = [
    "EnrollmentOutcome",
    "is_eligible",
    "auto_enroll_benefits",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnrollmentOutcome:
    enrolled: int = 0
    already_enrolled: int = 0
    employees_considered: int = 0
    failures: tuple[str, ...] = field(default_factory=tuple)

    @property
    def degraded(self) -> bool:
        return bool(self.failures)


def is_eligible(employee: EmployeeRecord, benefit: BenefitPlan, today: date) -> bool:
    criteria = benefit.eligibility or {}
    if criteria.get("min_performance_rating") is not None:
        return False
    if "employment_types" in criteria and employee.employment_type not in criteria["employment_types"]:
        return False
    if "genders" in criteria and employee.gender not in criteria["genders"]:
        return False
    if "employment_statuses" in criteria and employee.employment_status not in criteria["employment_statuses"]:
        return False
    min_band = criteria.get("min_band_level")
    if min_band is not None and band_level(employee.band) < int(min_band):
        return False
    min_tenure = criteria.get("min_tenure_months")
    if min_tenure is not None and months_between(employee.date_of_joining, today) < int(min_tenure):
        return False
    return True


def auto_enroll_benefits(
    store: EmployeeStore,
    employee_ids: Iterable[str],
    today: date | None = None,
) -> EnrollmentOutcome:
    ids = list(employee_ids)
    if not ids:
        return EnrollmentOutcome()
    today = today or datetime.now(UTC).date()

    try:
        benefits = store.list_active_benefits()
    except StoreError as e:
        logger.warning("benefit auto-enrollment skipped: %s", e)
        return EnrollmentOutcome(failures=(f"benefit catalog unavailable: {e}",))

    enrolled = 0
    existing = 0
    considered = 0
    failures: list[str] = []
    misconfigured: set[str] = set()
    for employee_id in ids:
        try:
            employee = store.get_employee(employee_id)
            if employee is None:
                continue
            considered += 1
            for benefit in benefits:
                if benefit.benefit_id in misconfigured:
                    continue
                try:
                    eligible = is_eligible(employee, benefit, today)
                except (ValueError, TypeError) as e:
                    # Reported once; the plan is skipped for the rest of the run
                    misconfigured.add(benefit.benefit_id)
                    failures.append(f"{benefit.benefit_id}: invalid eligibility criteria: {e}")
                    logger.warning("benefit %s has invalid eligibility criteria: %s", benefit.benefit_id, e)
                    continue
                if not eligible:
                    continue
                if store.enroll_benefit(employee_id, benefit.benefit_id):
                    enrolled += 1
                else:
                    existing += 1
        except StoreError as e:
            failures.append(f"{employee_id}: {e}")
            logger.warning("benefit enrollment failed employee=%s: %s", employee_id, e)

    logger.info("auto-enrolled benefits for %d imported employees (new=%d)", considered, enrolled)
    return EnrollmentOutcome(
        enrolled=enrolled,
        already_enrolled=existing,
        employees_considered=considered,
        failures=tuple(failures),
    )
