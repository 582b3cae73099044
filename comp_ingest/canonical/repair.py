from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any

from ..models.config_models import DEFAULT_EMAIL_DOMAIN, DEFAULT_FALLBACK_ANNUAL_FIXED
from ..models.employee import LOWEST_BAND, VALID_BANDS, VALID_GENDERS
from ..models.rows import NormalizedRow, RepairedRow

"""Row repair policy.

Fills every persistence-required field of a normalized row with a
deterministic value. Fields are repaired in a fixed order because later
defaults read earlier results (the synthesized id and email use the repaired
name; band inference uses the repaired designation; grade uses the band).

A row is dropped only when it is functionally empty: no name-like token and
no positive compensation figure. Dropped rows produce neither a count nor an
error.
"""

__all__ = [
    "DEFAULT_DEPARTMENT",
    "DEFAULT_DESIGNATION",
    "DEFAULT_GENDER",
    "BAND_KEYWORDS",
    "IdentifierSequence",
    "RepairContext",
    "is_valid_email",
    "infer_band",
    "is_functionally_empty",
    "repair_row",
    "repair_rows",
]

DEFAULT_DEPARTMENT = "General"
DEFAULT_DESIGNATION = "Employee"
DEFAULT_GENDER = "PREFER_NOT_TO_SAY"
DEFAULT_FIRST_NAME = "Employee"
DEFAULT_JOIN_YEARS_BACK = 2

# Most senior keywords first; first match wins.
BAND_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("chief", "D2"),
    ("cxo", "D2"),
    ("vice president", "D2"),
    ("vp", "D2"),
    ("senior director", "D2"),
    ("director", "D1"),
    ("senior manager", "M2"),
    ("sr manager", "M2"),
    ("sr. manager", "M2"),
    ("manager", "M1"),
    ("principal", "P3"),
    ("lead", "P3"),
    ("staff", "P3"),
    ("p3", "P3"),
    ("senior", "P1"),
    ("sr.", "P1"),
    ("sr", "P1"),
    ("specialist", "P1"),
    ("associate", "A2"),
    ("junior", "A2"),
    ("jr.", "A2"),
    ("jr", "A2"),
)

_BAND_PATTERNS = tuple(
    (re.compile(rf"(?<![a-z0-9]){re.escape(keyword)}(?![a-z0-9])"), band)
    for keyword, band in BAND_KEYWORDS
)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_NAME_LIKE_RE = re.compile(r"^[A-Za-z][A-Za-z\s]*$")
_EMAIL_PART_RE = re.compile(r"[^a-z0-9]")
_NON_LETTER_RE = re.compile(r"[^A-Z]")


class IdentifierSequence:
    """Counter for synthesized employee ids, owned by a single import run.

    Starting from 1 on every run makes re-runs of the same upload produce the
    same synthesized ids.
    """

    def __init__(self, start: int = 1) -> None:
        self._next = start

    def next_value(self) -> int:
        value = self._next
        self._next += 1
        return value


@dataclass
class RepairContext:
    """Everything the repair policy needs beyond the row itself."""
    run_started: datetime = field(default_factory=lambda: datetime.now(UTC))
    sequence: IdentifierSequence = field(default_factory=IdentifierSequence)
    email_domain: str = DEFAULT_EMAIL_DOMAIN
    fallback_annual_fixed: float = DEFAULT_FALLBACK_ANNUAL_FIXED

    @property
    def default_join_date(self) -> str:
        today = self.run_started.date()
        try:
            return today.replace(year=today.year - DEFAULT_JOIN_YEARS_BACK).isoformat()
        except ValueError:  # 29 Feb
            return today.replace(year=today.year - DEFAULT_JOIN_YEARS_BACK, day=28).isoformat()


def is_valid_email(value: str | None) -> bool:
    return bool(value) and bool(_EMAIL_RE.match(value))


def infer_band(designation: str | None) -> str:
    """Band from designation keywords, lowest band when nothing matches."""
    text = (designation or "").lower()
    for pattern, band in _BAND_PATTERNS:
        if pattern.search(text):
            return band
    return LOWEST_BAND


def _name_like(value: Any) -> str | None:
    if isinstance(value, str):
        text = value.strip()
        if text and _NAME_LIKE_RE.match(text):
            return text
    return None


def _leftover_name(row: NormalizedRow) -> str | None:
    for value in row.extras.values():
        name = _name_like(value)
        if name is not None:
            return name
    return None


def is_functionally_empty(row: NormalizedRow) -> bool:
    has_name = bool(row.first_name or row.last_name or _leftover_name(row))
    return not has_name and not row.has_compensation()


def _valid_iso_date(value: str | None) -> bool:
    if not value:
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def repair_row(row: NormalizedRow, position: int, context: RepairContext) -> RepairedRow:
    """Fill every required field of ``row``.

    ``position`` is the 0-based row index in the upload.
    """
    synthesized: set[str] = set()

    # 1. name
    first_name, last_name = row.first_name, row.last_name
    if not first_name or not last_name:
        leftover = _leftover_name(row)
        if leftover is not None:
            parts = leftover.split()
            if not first_name:
                first_name = parts[0]
                synthesized.add("first_name")
            if not last_name:
                last_name = " ".join(parts[1:]) if len(parts) > 1 else parts[0]
                synthesized.add("last_name")
    if not first_name:
        first_name = DEFAULT_FIRST_NAME
        synthesized.add("first_name")
    if not last_name:
        last_name = str(position + 1)
        synthesized.add("last_name")

    # 2. identifier
    employee_id = row.employee_id
    if not employee_id:
        prefix = _NON_LETTER_RE.sub("E", first_name[:3].upper()) or "EMP"
        employee_id = f"EMP-{prefix}-{context.sequence.next_value():04d}"
        synthesized.add("employee_id")

    # 3. email
    email = row.email
    if not is_valid_email(email):
        local_first = _EMAIL_PART_RE.sub("", first_name.lower()) or "emp"
        local_last = _EMAIL_PART_RE.sub("", last_name.lower()) or str(position)
        email = f"{local_first}.{local_last}@{context.email_domain}"
        synthesized.add("email")

    # 4. compensation
    annual_fixed = row.annual_fixed
    if annual_fixed <= 0:
        candidates = (row.annual_ctc, row.variable_pay)
        annual_fixed = next((c for c in candidates if c > 0), context.fallback_annual_fixed)
        synthesized.add("annual_fixed")

    # 5. department / designation
    department = row.department or DEFAULT_DEPARTMENT
    designation = row.designation or DEFAULT_DESIGNATION
    if not row.department:
        synthesized.add("department")
    if not row.designation:
        synthesized.add("designation")

    # 6. gender
    gender = row.gender
    if gender not in VALID_GENDERS:
        gender = DEFAULT_GENDER
        synthesized.add("gender")

    # 7. band
    band = row.band
    if band not in VALID_BANDS:
        band = infer_band(designation)
        synthesized.add("band")

    # 8. grade
    grade = row.grade
    if not grade:
        grade = band
        synthesized.add("grade")

    # 9. date of joining
    date_of_joining = row.date_of_joining
    if not _valid_iso_date(date_of_joining):
        date_of_joining = context.default_join_date
        synthesized.add("date_of_joining")

    return RepairedRow(
        position=position,
        employee_id=employee_id,
        first_name=first_name,
        last_name=last_name,
        email=email,
        department=department,
        designation=designation,
        date_of_joining=date_of_joining,
        gender=gender,
        band=band,
        grade=grade,
        annual_fixed=annual_fixed,
        variable_pay=row.variable_pay,
        annual_ctc=row.annual_ctc,
        work_mode=row.work_mode,
        work_location=row.work_location,
        employment_type=row.employment_type,
        reporting_manager_email=row.reporting_manager_email,
        cost_center=row.cost_center,
        synthesized=frozenset(synthesized),
    )


def repair_rows(rows: Iterable[NormalizedRow], context: RepairContext) -> list[RepairedRow]:
    """Repair rows in upload order, dropping functionally empty ones."""
    repaired: list[RepairedRow] = []
    for position, row in enumerate(rows):
        if is_functionally_empty(row):
            continue
        repaired.append(repair_row(row, position, context))
    return repaired
