from __future__ import annotations

import re
import warnings
from collections.abc import Iterable
from datetime import date, datetime, timedelta
from typing import Any

import pandas as pd

from ..models.rows import CanonicalRow, NormalizedRow

"""Value normalization: canonical cells -> typed values.

Nothing here raises. Values that cannot be understood come back as the
"missing" marker of their type (0.0 for money, None for dates and text) and
are handled by the repair policy.

Date policy: ``NN/NN/YYYY`` (also with ``-`` or ``.``) is read day first for
the whole organization unless the import is configured with
``date_order: mdy``. There is no per-file guessing; a reading that is not a
real calendar date (e.g. month 13) is treated as unparsable.
"""

__all__ = [
    "GENDER_MAP",
    "WORK_MODE_MAP",
    "EMPLOYMENT_TYPE_MAP",
    "parse_currency",
    "parse_date",
    "normalize_enum",
    "normalize_text",
    "normalize_row",
    "normalize_rows",
]

GENDER_MAP: dict[str, str] = {
    "m": "MALE", "male": "MALE", "man": "MALE",
    "f": "FEMALE", "female": "FEMALE", "woman": "FEMALE",
    "nb": "NON_BINARY", "nonbinary": "NON_BINARY",
    "other": "PREFER_NOT_TO_SAY", "prefernottosay": "PREFER_NOT_TO_SAY",
    "prefernotsay": "PREFER_NOT_TO_SAY", "na": "PREFER_NOT_TO_SAY",
    "undisclosed": "PREFER_NOT_TO_SAY",
}

WORK_MODE_MAP: dict[str, str] = {
    "remote": "REMOTE", "wfh": "REMOTE", "workfromhome": "REMOTE", "home": "REMOTE",
    "wfa": "REMOTE", "workfromanywhere": "REMOTE",
    "onsite": "ONSITE", "office": "ONSITE", "wfo": "ONSITE", "inoffice": "ONSITE",
    "workfromoffice": "ONSITE",
    "hybrid": "HYBRID", "mixed": "HYBRID", "partial": "HYBRID", "flexible": "HYBRID",
}

EMPLOYMENT_TYPE_MAP: dict[str, str] = {
    "fulltime": "FULL_TIME", "ft": "FULL_TIME", "permanent": "FULL_TIME", "regular": "FULL_TIME",
    "parttime": "PART_TIME", "pt": "PART_TIME",
    "contract": "CONTRACT", "contractor": "CONTRACT", "consultant": "CONTRACT",
    "temp": "CONTRACT", "temporary": "CONTRACT", "fixedterm": "CONTRACT",
    "intern": "INTERN", "internship": "INTERN", "trainee": "INTERN", "apprentice": "INTERN",
}

LAKH = 100_000
THOUSAND = 1_000

_LAKH_RE = re.compile(r"^(\d+(?:\.\d+)?)(?:l|lakh|lakhs|lac|lacs|lk)$")
_THOUSAND_RE = re.compile(r"^(\d+(?:\.\d+)?)k$")
_MONEY_NOISE_RE = re.compile(r"[\s,₹$€£]|^(?:rs\.?|inr)")
_NON_NUMERIC_RE = re.compile(r"[^0-9.]")

_DAY_FIRST_RE = re.compile(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})$")
_YEAR_FIRST_RE = re.compile(r"^(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})$")
_TIME_SUFFIX_RE = re.compile(r"[T ]\d{1,2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?$")
_SERIAL_RE = re.compile(r"^\d{5}(?:\.\d+)?$")

# Spreadsheet serial day 0 (1900 date system, includes the 1900 leap year bug)
_SERIAL_EPOCH = date(1899, 12, 30)
_MAX_SERIAL = 2958465  # 9999-12-31

_ENUM_KEY_RE = re.compile(r"[^0-9a-z]+")


def _enum_key(value: str) -> str:
    return _ENUM_KEY_RE.sub("", value.lower())


def parse_currency(value: Any) -> float:
    """Parse salary cells: "12,00,000", "12.5L", "12.5 Lakhs", "50K", 1200000.

    Unparsable values return 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return 0.0 if pd.isna(value) else float(value)
    text = _MONEY_NOISE_RE.sub("", str(value).strip().lower())
    if not text:
        return 0.0
    m = _LAKH_RE.match(text)
    if m:
        return float(m.group(1)) * LAKH
    m = _THOUSAND_RE.match(text)
    if m:
        return float(m.group(1)) * THOUSAND
    digits = _NON_NUMERIC_RE.sub("", text)
    try:
        return float(digits)
    except ValueError:
        return 0.0


def _iso(y: int, m: int, d: int) -> str | None:
    try:
        return date(y, m, d).isoformat()
    except ValueError:
        return None


def _from_serial(serial: float) -> str | None:
    if serial < 1 or serial > _MAX_SERIAL:
        return None
    return (_SERIAL_EPOCH + timedelta(days=int(serial))).isoformat()


def parse_date(value: Any, date_order: str = "dmy") -> str | None:
    """Parse a join date into ISO ``YYYY-MM-DD``; None when unparsable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)):
        if pd.isna(value):
            return None
        return _from_serial(float(value))

    text = _TIME_SUFFIX_RE.sub("", str(value).strip())
    if not text:
        return None
    if _SERIAL_RE.match(text):
        return _from_serial(float(text))

    m = _DAY_FIRST_RE.match(text)
    if m:
        first, second, year = (int(g) for g in m.groups())
        if date_order == "mdy":
            return _iso(year, first, second)
        return _iso(year, second, first)

    m = _YEAR_FIRST_RE.match(text)
    if m:
        year, month, day = (int(g) for g in m.groups())
        return _iso(year, month, day)

    # Textual forms such as "15 Jan 2024" or "Jan 15, 2024"
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        parsed = pd.to_datetime(text, errors="coerce", dayfirst=(date_order != "mdy"))
    if pd.isna(parsed):
        return None
    return parsed.date().isoformat()


def normalize_enum(value: Any, synonyms: dict[str, str]) -> str | None:
    """Map through a synonym table; unknown values are upper-cased as-is."""
    text = normalize_text(value)
    if text is None:
        return None
    return synonyms.get(_enum_key(text), text.upper())


def normalize_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float):
        if pd.isna(value):
            return None
        if value.is_integer():
            # Spreadsheets hand back 101 as 101.0
            return str(int(value))
    text = str(value).strip()
    return text or None


def normalize_row(row: CanonicalRow, date_order: str = "dmy") -> NormalizedRow:
    email = normalize_text(row.email)
    manager_email = normalize_text(row.reporting_manager_email)
    band = normalize_text(row.band)
    return NormalizedRow(
        employee_id=normalize_text(row.employee_id),
        first_name=normalize_text(row.first_name),
        last_name=normalize_text(row.last_name),
        email=email.lower() if email else None,
        department=normalize_text(row.department),
        designation=normalize_text(row.designation),
        date_of_joining=parse_date(row.date_of_joining, date_order),
        gender=normalize_enum(row.gender, GENDER_MAP),
        band=band.upper() if band else None,
        grade=normalize_text(row.grade),
        annual_fixed=parse_currency(row.annual_fixed),
        variable_pay=parse_currency(row.variable_pay),
        annual_ctc=parse_currency(row.annual_ctc),
        work_mode=normalize_enum(row.work_mode, WORK_MODE_MAP),
        work_location=normalize_text(row.work_location),
        employment_type=normalize_enum(row.employment_type, EMPLOYMENT_TYPE_MAP),
        reporting_manager_email=manager_email.lower() if manager_email else None,
        cost_center=normalize_text(row.cost_center),
        extras=dict(row.extras),
    )


def normalize_rows(rows: Iterable[CanonicalRow], date_order: str = "dmy") -> list[NormalizedRow]:
    return [normalize_row(r, date_order) for r in rows]
