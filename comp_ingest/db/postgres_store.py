from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import astuple, fields
from typing import Any

import psycopg2
import psycopg2.extras

from ..models.employee import BenefitPlan, DerivedFields, EmployeeRecord, SalaryBand
from .store import DuplicateEmailError, StoreError

"""PostgreSQL EmployeeStore (psycopg2).

Every operation runs in its own transaction (``with conn:`` commits on
success and rolls back on error), so a failed row never leaves a partial
write behind and never poisons the next row. Operations on the shared
connection are serialized with a lock.

Upsert: ``INSERT ... ON CONFLICT (organization_id, employee_id) DO UPDATE``.
"""

__all__ = [
    "SCHEMA_SQL",
    "EMAIL_CONSTRAINT",
    "PostgresEmployeeStore",
    "connect",
]

EMAIL_CONSTRAINT = "employees_org_email_key"

SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS employees (
    organization_id        TEXT NOT NULL,
    employee_id            TEXT NOT NULL,
    first_name             TEXT NOT NULL,
    last_name              TEXT NOT NULL,
    email                  TEXT NOT NULL,
    department             TEXT NOT NULL,
    designation            TEXT NOT NULL,
    date_of_joining        DATE NOT NULL,
    gender                 TEXT NOT NULL,
    band                   TEXT NOT NULL,
    grade                  TEXT NOT NULL,
    annual_fixed           DOUBLE PRECISION NOT NULL CHECK (annual_fixed > 0),
    variable_pay           DOUBLE PRECISION NOT NULL DEFAULT 0,
    annual_ctc             DOUBLE PRECISION NOT NULL DEFAULT 0,
    basic_annual           DOUBLE PRECISION NOT NULL DEFAULT 0,
    hra_annual             DOUBLE PRECISION NOT NULL DEFAULT 0,
    lta_annual             DOUBLE PRECISION NOT NULL DEFAULT 0,
    pf_annual              DOUBLE PRECISION NOT NULL DEFAULT 0,
    special_allowance      DOUBLE PRECISION NOT NULL DEFAULT 0,
    monthly_gross          DOUBLE PRECISION NOT NULL DEFAULT 0,
    work_mode              TEXT NOT NULL DEFAULT 'HYBRID',
    work_location          TEXT,
    employment_type        TEXT NOT NULL DEFAULT 'FULL_TIME',
    employment_status      TEXT NOT NULL DEFAULT 'ACTIVE',
    cost_center            TEXT,
    reporting_manager_id   TEXT,
    job_area               TEXT,
    compa_ratio            DOUBLE PRECISION,
    pay_range_penetration  DOUBLE PRECISION,
    time_in_current_grade  INTEGER,
    updated_at             TIMESTAMPTZ NOT NULL DEFAULT now(),
    PRIMARY KEY (organization_id, employee_id),
    CONSTRAINT {EMAIL_CONSTRAINT} UNIQUE (organization_id, email)
);

CREATE TABLE IF NOT EXISTS salary_bands (
    organization_id  TEXT NOT NULL,
    band_code        TEXT NOT NULL,
    job_area         TEXT NOT NULL DEFAULT '',
    min_salary       DOUBLE PRECISION NOT NULL,
    mid_salary       DOUBLE PRECISION NOT NULL,
    max_salary       DOUBLE PRECISION NOT NULL,
    PRIMARY KEY (organization_id, band_code, job_area)
);

CREATE TABLE IF NOT EXISTS benefits (
    organization_id  TEXT NOT NULL,
    benefit_id       TEXT NOT NULL,
    name             TEXT NOT NULL,
    eligibility      JSONB NOT NULL DEFAULT '{{}}'::jsonb,
    is_active        BOOLEAN NOT NULL DEFAULT TRUE,
    PRIMARY KEY (organization_id, benefit_id)
);

CREATE TABLE IF NOT EXISTS employee_benefits (
    organization_id  TEXT NOT NULL,
    employee_id      TEXT NOT NULL,
    benefit_id       TEXT NOT NULL,
    status           TEXT NOT NULL DEFAULT 'ACTIVE',
    enrolled_at      TIMESTAMPTZ NOT NULL DEFAULT now(),
    PRIMARY KEY (organization_id, employee_id, benefit_id),
    FOREIGN KEY (organization_id, employee_id)
        REFERENCES employees (organization_id, employee_id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS ai_insights (
    organization_id  TEXT NOT NULL,
    insight_id       TEXT NOT NULL,
    expires_at       TIMESTAMPTZ,
    PRIMARY KEY (organization_id, insight_id)
);
"""

_EMPLOYEE_COLUMNS: tuple[str, ...] = tuple(f.name for f in fields(EmployeeRecord))
_DERIVED_COLUMNS = frozenset({"compa_ratio", "pay_range_penetration", "time_in_current_grade"})


def connect(dsn: str) -> Any:
    """Open a psycopg2 connection with explicit transaction boundaries."""
    conn = psycopg2.connect(dsn)
    conn.autocommit = False
    return conn


def _record_from_row(row: dict[str, Any]) -> EmployeeRecord:
    return EmployeeRecord(**{name: row[name] for name in _EMPLOYEE_COLUMNS})


class PostgresEmployeeStore:
    def __init__(self, conn: Any, organization_id: str) -> None:
        self._conn = conn
        self.organization_id = organization_id
        self._lock = threading.Lock()

    def initialize_schema(self) -> None:
        self._execute(SCHEMA_SQL)

    def close(self) -> None:
        with self._lock:
            if not self._conn.closed:
                self._conn.close()

    def _execute(self, sql: str, params: Any = None, *, fetch: str | None = None) -> Any:
        """Run one statement in its own transaction.

        fetch: None (rowcount), "one" or "all" (dict rows).
        """
        with self._lock:
            try:
                with self._conn:
                    with self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                        cur.execute(sql, params)
                        if fetch == "one":
                            return cur.fetchone()
                        if fetch == "all":
                            return cur.fetchall()
                        return cur.rowcount
            except psycopg2.Error as e:
                raise StoreError(str(e).strip()) from e

    # -- employees --------------------------------------------------------
    def upsert_employee(self, record: EmployeeRecord, preserve_fields: Iterable[str] = ()) -> EmployeeRecord:
        preserved = set(preserve_fields) | _DERIVED_COLUMNS
        columns = ("organization_id",) + _EMPLOYEE_COLUMNS
        updates = [
            f"{c} = EXCLUDED.{c}"
            for c in _EMPLOYEE_COLUMNS
            if c not in preserved and c not in ("employee_id", "job_area")
        ]
        updates.append("job_area = COALESCE(EXCLUDED.job_area, employees.job_area)")
        updates.append("updated_at = now()")
        sql = (
            f"INSERT INTO employees ({', '.join(columns)}) "
            f"VALUES ({', '.join(['%s'] * len(columns))}) "
            f"ON CONFLICT (organization_id, employee_id) DO UPDATE SET {', '.join(updates)} "
            "RETURNING *"
        )
        params = (self.organization_id,) + astuple(record)
        try:
            row = self._execute(sql, params, fetch="one")
        except StoreError as e:
            cause = e.__cause__
            if isinstance(cause, psycopg2.IntegrityError) and cause.diag.constraint_name == EMAIL_CONSTRAINT:
                raise DuplicateEmailError(record.email) from cause
            raise
        return _record_from_row(row)

    def delete_all(self) -> int:
        return self._execute("DELETE FROM employees WHERE organization_id = %s", (self.organization_id,))

    def get_employee(self, employee_id: str) -> EmployeeRecord | None:
        row = self._execute(
            "SELECT * FROM employees WHERE organization_id = %s AND employee_id = %s",
            (self.organization_id, employee_id),
            fetch="one",
        )
        return _record_from_row(row) if row else None

    def count_employees(self) -> int:
        row = self._execute(
            "SELECT count(*) AS n FROM employees WHERE organization_id = %s",
            (self.organization_id,),
            fetch="one",
        )
        return int(row["n"])

    def find_active_employee_id_by_email(self, email: str) -> str | None:
        row = self._execute(
            "SELECT employee_id FROM employees "
            "WHERE organization_id = %s AND email = %s AND employment_status = 'ACTIVE'",
            (self.organization_id, email),
            fetch="one",
        )
        return row["employee_id"] if row else None

    def update_derived(self, employee_id: str, derived: DerivedFields) -> None:
        self._execute(
            "UPDATE employees SET compa_ratio = %s, pay_range_penetration = %s, "
            "time_in_current_grade = %s, updated_at = now() "
            "WHERE organization_id = %s AND employee_id = %s",
            (
                derived.compa_ratio,
                derived.pay_range_penetration,
                derived.time_in_current_grade,
                self.organization_id,
                employee_id,
            ),
        )

    def active_employee_ids_for_band(self, band_code: str) -> list[str]:
        rows = self._execute(
            "SELECT employee_id FROM employees "
            "WHERE organization_id = %s AND band = %s AND employment_status = 'ACTIVE' "
            "ORDER BY employee_id",
            (self.organization_id, band_code),
            fetch="all",
        )
        return [r["employee_id"] for r in rows]

    # -- salary bands -----------------------------------------------------
    def find_salary_band(self, band_code: str, job_area: str | None = None) -> SalaryBand | None:
        # scoped match sorts first, then the unscoped row
        row = self._execute(
            "SELECT band_code, NULLIF(job_area, '') AS job_area, min_salary, mid_salary, max_salary "
            "FROM salary_bands WHERE organization_id = %s AND band_code = %s "
            "ORDER BY (job_area = %s) DESC, (job_area = '') DESC LIMIT 1",
            (self.organization_id, band_code, job_area or ""),
            fetch="one",
        )
        if row is None:
            return None
        return SalaryBand(
            band_code=row["band_code"],
            min_salary=row["min_salary"],
            mid_salary=row["mid_salary"],
            max_salary=row["max_salary"],
            job_area=row["job_area"],
        )

    def save_salary_band(self, band: SalaryBand) -> SalaryBand:
        self._execute(
            "INSERT INTO salary_bands (organization_id, band_code, job_area, min_salary, mid_salary, max_salary) "
            "VALUES (%s, %s, %s, %s, %s, %s) "
            "ON CONFLICT (organization_id, band_code, job_area) DO UPDATE SET "
            "min_salary = EXCLUDED.min_salary, mid_salary = EXCLUDED.mid_salary, "
            "max_salary = EXCLUDED.max_salary",
            (
                self.organization_id,
                band.band_code,
                band.job_area or "",
                band.min_salary,
                band.mid_salary,
                band.max_salary,
            ),
        )
        return band

    # -- insights / benefits ---------------------------------------------
    def expire_ai_insights(self) -> int:
        return self._execute(
            "UPDATE ai_insights SET expires_at = now() WHERE organization_id = %s",
            (self.organization_id,),
        )

    def list_active_benefits(self) -> list[BenefitPlan]:
        rows = self._execute(
            "SELECT benefit_id, name, eligibility, is_active FROM benefits "
            "WHERE organization_id = %s AND is_active ORDER BY benefit_id",
            (self.organization_id,),
            fetch="all",
        )
        return [
            BenefitPlan(
                benefit_id=r["benefit_id"],
                name=r["name"],
                eligibility=dict(r["eligibility"] or {}),
                is_active=r["is_active"],
            )
            for r in rows
        ]

    def enroll_benefit(self, employee_id: str, benefit_id: str) -> bool:
        inserted = self._execute(
            "INSERT INTO employee_benefits (organization_id, employee_id, benefit_id) "
            "VALUES (%s, %s, %s) ON CONFLICT DO NOTHING",
            (self.organization_id, employee_id, benefit_id),
        )
        return inserted == 1
