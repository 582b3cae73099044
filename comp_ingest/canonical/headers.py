from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any

from ..models.rows import CANONICAL_FIELDS, CanonicalRow, RawRow

"""Header canonicalization.

Source headers are reduced to a lookup key (lower case, letters and digits
only) and resolved through a static alias table. "Full name" style columns
are not a field of their own: the first non-blank one is split into first
and last name, filling whichever of the two the row does not already carry.

Unknown headers are kept verbatim in CanonicalRow.extras. This stage never
fails.
"""

__all__ = [
    "FULL_NAME",
    "COLUMN_ALIASES",
    "normalize_header_key",
    "resolve_header",
    "split_full_name",
    "canonicalize_row",
    "canonicalize_rows",
]

FULL_NAME = "full_name"

_ALIASES_BY_FIELD: dict[str, tuple[str, ...]] = {
    "employee_id": (
        "employeeid", "empid", "empno", "employeeno", "employeenumber", "empnumber",
        "empcode", "employeecode", "staffid", "staffno", "staffnumber", "refno",
        "associateid", "associateidentifier", "associateno", "workerid", "workerno",
        "id", "employeeidentifier", "personnelno", "personnelnumber", "payrollid",
        "payrollno", "ecode",
    ),
    FULL_NAME: (
        "name", "fullname", "employeename", "empname", "staffname", "associatename",
        "workername", "candidatename", "membername", "employeefullname", "nameofemployee",
    ),
    "first_name": ("firstname", "fname", "givenname", "forename", "first"),
    "last_name": ("lastname", "lname", "surname", "familyname", "last"),
    "email": (
        "email", "emailid", "emailaddress", "mail", "workmail", "workemail", "officeemail",
        "officialemail", "officialmail", "corporateemail", "companyemail", "businessemail",
    ),
    "department": (
        "department", "dept", "deptname", "departmentname", "businessunit", "bu",
        "division", "team", "function", "practicearea", "costdepartment", "orgunit",
    ),
    "designation": (
        "designation", "jobtitle", "title", "role", "position", "jobrole",
        "currentdesignation", "jobdesignation", "currentrole", "jobposition", "positiontitle",
    ),
    "date_of_joining": (
        "dateofjoining", "doj", "joiningdate", "joindate", "startdate", "hiredate",
        "dateofhire", "doh", "dateofjoin", "joiningdateddmmyyyy", "dojddmmyyyy",
        "dateofcommencement", "employmentstartdate",
    ),
    "gender": ("gender", "sex", "genderidentity"),
    "band": (
        "band", "payband", "level", "gradelevel", "bandlevel", "salarylevel", "joblevel",
        "careerband", "employeeband", "salaryband", "careerlevel",
    ),
    "grade": ("grade", "paygrade", "subband", "jobgrade", "gradecode", "employeegrade"),
    "annual_fixed": (
        "annualfixed", "fixedctc", "basesalary", "annualbase", "fixedsalary",
        "annualfixedsalary", "fixedannual", "basectc", "fixedpay", "annualsalary",
        "totalfixed", "annualfixedctc", "grosssalary", "annualgross", "fixedcomponent",
        "basepay", "annualbasesalary", "salary",
    ),
    "variable_pay": (
        "variablepay", "variable", "targetvariable", "variablecompensation", "bonustarget",
        "annualvariable", "variablectc", "incentive", "annualincentive", "stincentive",
        "bonus", "targetbonus",
    ),
    "annual_ctc": (
        "annualctc", "ctc", "totalctc", "totalcompensation", "grossctc", "totalannualctc",
        "packagectc", "totalpackage", "overallctc", "grossannualctc", "annualtotalctc",
        "compensation", "costtocompany",
    ),
    "work_mode": (
        "workmode", "workingmode", "workarrangement", "workingarrangement", "mode",
        "worktype", "workmodel",
    ),
    "work_location": (
        "worklocation", "location", "officelocation", "city", "baselocation",
        "primarylocation", "office", "site", "basecity", "branch",
    ),
    "employment_type": (
        "employmenttype", "emptype", "contracttype", "employeetype", "workertype",
        "stafftype", "employeecategory",
    ),
    "reporting_manager_email": (
        "reportingmanageremail", "manageremail", "reportstoemail", "reportingmanager",
        "managersmail", "managermail", "reportsto", "linemanageremail",
    ),
    "cost_center": (
        "costcenter", "cc", "costcentre", "costcentrecode", "costcentercode",
    ),
}

COLUMN_ALIASES: dict[str, str] = {
    alias: target for target, aliases in _ALIASES_BY_FIELD.items() for alias in aliases
}
# Canonical names themselves always resolve
COLUMN_ALIASES.update({name.replace("_", ""): name for name in CANONICAL_FIELDS})

_NON_ALNUM = re.compile(r"[^0-9a-z]+")


def normalize_header_key(header: Any) -> str:
    """Lower case, strip whitespace, punctuation and separators."""
    return _NON_ALNUM.sub("", str(header).lower())


def resolve_header(header: Any) -> str | None:
    """Canonical field (or FULL_NAME) for a source header, None when unknown."""
    return COLUMN_ALIASES.get(normalize_header_key(header))


def split_full_name(value: Any) -> tuple[str, str] | None:
    """"Priya Sharma Rao" -> ("Priya", "Sharma Rao"); a single token fills both parts."""
    parts = str(value).split()
    if not parts:
        return None
    first = parts[0]
    last = " ".join(parts[1:]) if len(parts) > 1 else first
    return first, last


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def canonicalize_row(raw: RawRow) -> CanonicalRow:
    values: dict[str, Any] = {}
    extras: dict[str, Any] = {}
    full_name: Any = None

    for key, value in raw.items():
        target = resolve_header(key)
        if target is None:
            extras[key] = value
            continue
        if _is_blank(value):
            continue
        if target == FULL_NAME:
            if full_name is None:
                full_name = value
            continue
        # first non-blank column for a field wins
        values.setdefault(target, value)

    if full_name is not None:
        split = split_full_name(full_name)
        if split is not None:
            values.setdefault("first_name", split[0])
            values.setdefault("last_name", split[1])

    return CanonicalRow(**values, extras=extras)


def canonicalize_rows(rows: Iterable[RawRow]) -> list[CanonicalRow]:
    return [canonicalize_row(r) for r in rows]
