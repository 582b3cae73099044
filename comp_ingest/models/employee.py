from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum

"""Persistent employee entities for the compensation import pipeline.

EmployeeRecord is the canonical, validated row written to the store.
SalaryBand and BenefitPlan are read (and, for bands, edited) by the
services that recompute derived metrics and enroll benefits.
"""

__all__ = [
    "VALID_BANDS",
    "VALID_GENDERS",
    "VALID_WORK_MODES",
    "VALID_EMPLOYMENT_TYPES",
    "LOWEST_BAND",
    "ImportMode",
    "EmploymentStatus",
    "SalaryBand",
    "BenefitPlan",
    "DerivedFields",
    "EmployeeRecord",
    "band_level",
]

# Ordered junior -> senior. Position is the band level used by benefit rules.
VALID_BANDS: tuple[str, ...] = ("A1", "A2", "P1", "P2", "P3", "M1", "M2", "D0", "D1", "D2")
LOWEST_BAND = VALID_BANDS[0]

VALID_GENDERS: tuple[str, ...] = ("MALE", "FEMALE", "NON_BINARY", "PREFER_NOT_TO_SAY")
VALID_WORK_MODES: tuple[str, ...] = ("REMOTE", "ONSITE", "HYBRID")
VALID_EMPLOYMENT_TYPES: tuple[str, ...] = ("FULL_TIME", "PART_TIME", "CONTRACT", "INTERN")


class ImportMode(Enum):
    """Write mode for an import run.

    - UPSERT: create missing records, overwrite existing ones by employee id
    - REPLACE: delete every record of the organization first (irreversible)
    """
    UPSERT = "upsert"
    REPLACE = "replace"

    @classmethod
    def parse(cls, value: str | ImportMode | None) -> ImportMode:
        if isinstance(value, ImportMode):
            return value
        if value is None:
            return cls.UPSERT
        return cls.REPLACE if str(value).strip().lower() == "replace" else cls.UPSERT


class EmploymentStatus(Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    TERMINATED = "TERMINATED"


def band_level(band_code: str) -> int:
    """Index of a band in VALID_BANDS, -1 when unknown."""
    try:
        return VALID_BANDS.index(band_code)
    except ValueError:
        return -1


@dataclass(frozen=True)
class SalaryBand:
    """Min/mid/max pay configuration for a band, optionally scoped to a job area."""
    band_code: str
    min_salary: float
    mid_salary: float
    max_salary: float
    job_area: str | None = None


@dataclass(frozen=True)
class BenefitPlan:
    """Active catalog entry with its eligibility criteria.

    Recognised criteria keys: employment_types, genders, employment_statuses,
    min_band_level, min_tenure_months, min_performance_rating.
    """
    benefit_id: str
    name: str
    eligibility: dict[str, object] = field(default_factory=dict)
    is_active: bool = True


@dataclass(frozen=True)
class DerivedFields:
    compa_ratio: float | None
    pay_range_penetration: float | None
    time_in_current_grade: int


@dataclass(frozen=True)
class EmployeeRecord:
    """Canonical employee compensation record (upsert key: employee_id)."""
    employee_id: str
    first_name: str
    last_name: str
    email: str
    department: str
    designation: str
    date_of_joining: date
    gender: str
    band: str
    grade: str
    annual_fixed: float
    variable_pay: float
    annual_ctc: float
    # Salary structure derived from annual_fixed at write time
    basic_annual: float = 0.0
    hra_annual: float = 0.0
    lta_annual: float = 0.0
    pf_annual: float = 0.0
    special_allowance: float = 0.0
    monthly_gross: float = 0.0
    work_mode: str = "HYBRID"
    work_location: str | None = None
    employment_type: str = "FULL_TIME"
    employment_status: str = EmploymentStatus.ACTIVE.value
    cost_center: str | None = None
    reporting_manager_id: str | None = None
    job_area: str | None = None
    # Null until the derived field calculator runs
    compa_ratio: float | None = None
    pay_range_penetration: float | None = None
    time_in_current_grade: int | None = None

    @property
    def is_active(self) -> bool:
        return self.employment_status == EmploymentStatus.ACTIVE.value

    def with_derived(self, derived: DerivedFields) -> EmployeeRecord:
        return replace(
            self,
            compa_ratio=derived.compa_ratio,
            pay_range_penetration=derived.pay_range_penetration,
            time_in_current_grade=derived.time_in_current_grade,
        )
