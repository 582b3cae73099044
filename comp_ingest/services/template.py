from __future__ import annotations

import csv
import io

"""Downloadable import template: header row plus two example rows (CSV)."""

__all__ = ["TEMPLATE_HEADERS", "TEMPLATE_EXAMPLE_ROWS", "generate_template"]

TEMPLATE_HEADERS: tuple[str, ...] = (
    "employeeId", "firstName", "lastName", "email",
    "department", "designation", "dateOfJoining", "gender",
    "band", "grade", "annualFixed", "variablePay", "annualCtc",
    "workMode", "workLocation", "employmentType", "reportingManagerEmail", "costCenter",
)

TEMPLATE_EXAMPLE_ROWS: tuple[tuple[str, ...], ...] = (
    (
        "EMP001", "Priya", "Sharma", "priya.sharma@company.com",
        "Engineering", "Software Engineer", "2024-01-15", "FEMALE",
        "P1", "P1-L1", "1200000", "120000", "1380000",
        "HYBRID", "Bangalore", "FULL_TIME", "manager@company.com", "CC-ENG",
    ),
    (
        "EMP002", "Rahul", "Verma", "rahul.verma@company.com",
        "Sales", "Account Executive", "2023-06-01", "MALE",
        "A2", "A2-L1", "800000", "200000", "1050000",
        "ONSITE", "Mumbai", "FULL_TIME", "", "",
    ),
)


def generate_template() -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(TEMPLATE_HEADERS)
    writer.writerows(TEMPLATE_EXAMPLE_ROWS)
    return buf.getvalue()
