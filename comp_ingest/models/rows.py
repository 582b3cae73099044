from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

"""Row models flowing through the import stages.

RawRow (plain dict from the decoder) -> CanonicalRow -> NormalizedRow -> RepairedRow.

Each stage works on a fixed set of optional attributes instead of probing
arbitrary dict keys; unrecognised source columns ride along in ``extras``
under their original header.
"""

__all__ = [
    "RawRow",
    "CANONICAL_FIELDS",
    "COMPENSATION_FIELDS",
    "CanonicalRow",
    "NormalizedRow",
    "RepairedRow",
]

RawRow = dict[str, Any]

CANONICAL_FIELDS: tuple[str, ...] = (
    "employee_id",
    "first_name",
    "last_name",
    "email",
    "department",
    "designation",
    "date_of_joining",
    "gender",
    "band",
    "grade",
    "annual_fixed",
    "variable_pay",
    "annual_ctc",
    "work_mode",
    "work_location",
    "employment_type",
    "reporting_manager_email",
    "cost_center",
)

COMPENSATION_FIELDS: tuple[str, ...] = ("annual_fixed", "variable_pay", "annual_ctc")


@dataclass(frozen=True)
class CanonicalRow:
    """Source cells keyed by canonical field. None means the column was absent or blank."""
    employee_id: Any = None
    first_name: Any = None
    last_name: Any = None
    email: Any = None
    department: Any = None
    designation: Any = None
    date_of_joining: Any = None
    gender: Any = None
    band: Any = None
    grade: Any = None
    annual_fixed: Any = None
    variable_pay: Any = None
    annual_ctc: Any = None
    work_mode: Any = None
    work_location: Any = None
    employment_type: Any = None
    reporting_manager_email: Any = None
    cost_center: Any = None
    extras: dict[str, Any] = field(default_factory=dict)

    def present_fields(self) -> set[str]:
        return {f.name for f in fields(self) if f.name != "extras" and getattr(self, f.name) is not None}


@dataclass(frozen=True)
class NormalizedRow:
    """Typed, cleaned values. Compensation figures of 0 mean "still missing"."""
    employee_id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    department: str | None = None
    designation: str | None = None
    date_of_joining: str | None = None  # ISO YYYY-MM-DD
    gender: str | None = None
    band: str | None = None
    grade: str | None = None
    annual_fixed: float = 0.0
    variable_pay: float = 0.0
    annual_ctc: float = 0.0
    work_mode: str | None = None
    work_location: str | None = None
    employment_type: str | None = None
    reporting_manager_email: str | None = None
    cost_center: str | None = None
    extras: dict[str, Any] = field(default_factory=dict)

    def has_compensation(self) -> bool:
        return any(getattr(self, name) > 0 for name in COMPENSATION_FIELDS)


@dataclass(frozen=True)
class RepairedRow:
    """A row guaranteed to satisfy the persistence constraints.

    ``position`` is the 0-based index of the row in the upload; reported row
    numbers are position + 2 (1-based count plus the header line).
    ``synthesized`` names the fields filled in by the repair policy.
    """
    position: int
    employee_id: str
    first_name: str
    last_name: str
    email: str
    department: str
    designation: str
    date_of_joining: str
    gender: str
    band: str
    grade: str
    annual_fixed: float
    variable_pay: float = 0.0
    annual_ctc: float = 0.0
    work_mode: str | None = None
    work_location: str | None = None
    employment_type: str | None = None
    reporting_manager_email: str | None = None
    cost_center: str | None = None
    synthesized: frozenset[str] = frozenset()

    @property
    def row_number(self) -> int:
        return self.position + 2
