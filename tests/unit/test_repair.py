from __future__ import annotations

from datetime import UTC, datetime

import pytest

from comp_ingest.canonical.repair import (
    IdentifierSequence,
    RepairContext,
    infer_band,
    is_functionally_empty,
    is_valid_email,
    repair_row,
    repair_rows,
)
from comp_ingest.models.rows import NormalizedRow

RUN_START = datetime(2025, 3, 15, 9, 30, tzinfo=UTC)


def _ctx(**kw) -> RepairContext:
    return RepairContext(run_started=RUN_START, **kw)


def test_complete_row_passes_through_untouched():
    row = NormalizedRow(
        employee_id="E1", first_name="Asha", last_name="Rao", email="asha@acme.io",
        department="Sales", designation="Account Executive", date_of_joining="2023-06-01",
        gender="FEMALE", band="A2", grade="A2-L1", annual_fixed=800000.0,
    )
    repaired = repair_row(row, 0, _ctx())
    assert repaired.synthesized == frozenset()
    assert repaired.employee_id == "E1"
    assert repaired.email == "asha@acme.io"
    assert repaired.band == "A2"
    assert repaired.grade == "A2-L1"
    assert repaired.row_number == 2


def test_name_from_leftover_column():
    row = NormalizedRow(annual_fixed=900000.0, extras={"Code": "X-9", "Person": "Meera Nair"})
    repaired = repair_row(row, 4, _ctx())
    assert (repaired.first_name, repaired.last_name) == ("Meera", "Nair")
    assert {"first_name", "last_name"} <= repaired.synthesized


def test_single_token_leftover_fills_both_parts():
    repaired = repair_row(NormalizedRow(annual_fixed=1.0, extras={"Who": "Madonna"}), 0, _ctx())
    assert (repaired.first_name, repaired.last_name) == ("Madonna", "Madonna")


def test_default_name_uses_position():
    repaired = repair_row(NormalizedRow(annual_fixed=700000.0), 6, _ctx())
    assert repaired.first_name == "Employee"
    assert repaired.last_name == "7"


def test_identifier_synthesis_uses_run_sequence():
    ctx = _ctx()
    rows = [
        NormalizedRow(first_name="Asha", last_name="Rao", annual_fixed=1.0),
        NormalizedRow(first_name="Al", last_name="Khan", annual_fixed=1.0),
        NormalizedRow(first_name="Employee", last_name="3", annual_fixed=1.0),
    ]
    ids = [r.employee_id for r in repair_rows(rows, ctx)]
    assert ids == ["EMP-ASH-0001", "EMP-AL-0002", "EMP-EMP-0003"]


def test_identifier_prefix_replaces_non_letters():
    repaired = repair_row(NormalizedRow(first_name="Zoë", last_name="Lee", annual_fixed=1.0), 0, _ctx())
    assert repaired.employee_id == "EMP-ZOE-0001"


def test_sequences_are_independent_per_run():
    row = NormalizedRow(first_name="Asha", last_name="Rao", annual_fixed=1.0)
    first = repair_row(row, 0, _ctx()).employee_id
    second = repair_row(row, 0, _ctx()).employee_id
    assert first == second == "EMP-ASH-0001"


def test_identifier_sequence_counts_up():
    seq = IdentifierSequence()
    assert [seq.next_value() for _ in range(3)] == [1, 2, 3]


@pytest.mark.parametrize("email", [None, "not-an-email", "a@b", "two words@x.com"])
def test_email_synthesized_when_missing_or_invalid(email):
    row = NormalizedRow(first_name="Mary-Ann", last_name="O'Neil", email=email, annual_fixed=1.0)
    repaired = repair_row(row, 0, _ctx())
    assert repaired.email == "maryann.oneil@company.com"
    assert "email" in repaired.synthesized


def test_email_uses_configured_domain():
    row = NormalizedRow(first_name="Asha", last_name="Rao", annual_fixed=1.0)
    assert repair_row(row, 0, _ctx(email_domain="acme.io")).email == "asha.rao@acme.io"


def test_email_local_part_fallbacks():
    row = NormalizedRow(first_name="李", last_name="王", annual_fixed=1.0)
    assert repair_row(row, 3, _ctx()).email == "emp.3@company.com"


def test_is_valid_email():
    assert is_valid_email("a.b@c.io")
    assert not is_valid_email("a.b@c")
    assert not is_valid_email(None)


@pytest.mark.parametrize(
    "fixed,ctc,variable,expected",
    [
        (1200000.0, 0.0, 0.0, 1200000.0),
        (0.0, 1500000.0, 200000.0, 1500000.0),
        (0.0, 0.0, 200000.0, 200000.0),
    ],
)
def test_compensation_fallback_order(fixed, ctc, variable, expected):
    row = NormalizedRow(first_name="A", last_name="B", annual_fixed=fixed, annual_ctc=ctc, variable_pay=variable)
    assert repair_row(row, 0, _ctx()).annual_fixed == expected


def test_compensation_floor_when_nothing_positive():
    row = NormalizedRow(first_name="Asha", last_name="Rao")
    repaired = repair_row(row, 0, _ctx())
    assert repaired.annual_fixed == 500000.0
    assert "annual_fixed" in repaired.synthesized


def test_defaults_for_department_designation_gender_grade_and_doj():
    row = NormalizedRow(first_name="Asha", last_name="Rao", gender="UNKNOWN", annual_fixed=1.0)
    repaired = repair_row(row, 0, _ctx())
    assert repaired.department == "General"
    assert repaired.designation == "Employee"
    assert repaired.gender == "PREFER_NOT_TO_SAY"
    assert repaired.band == "A1"
    assert repaired.grade == "A1"
    assert repaired.date_of_joining == "2023-03-15"


def test_default_doj_on_leap_day():
    ctx = RepairContext(run_started=datetime(2024, 2, 29, tzinfo=UTC))
    assert ctx.default_join_date == "2022-02-28"


@pytest.mark.parametrize(
    "designation,band",
    [
        ("Chief Technology Officer", "D2"),
        ("VP Engineering", "D2"),
        ("Senior Director, Finance", "D2"),
        ("Director of Sales", "D1"),
        ("Senior Manager - HR", "M2"),
        ("Sr. Manager", "M2"),
        ("Engineering Manager", "M1"),
        ("Lead Engineer", "P3"),
        ("Principal Consultant", "P3"),
        ("Senior Software Engineer", "P1"),
        ("Sr Analyst", "P1"),
        ("Associate Consultant", "A2"),
        ("Junior Developer", "A2"),
        ("Software Engineer", "A1"),
        ("Leader of nothing", "A1"),
        ("Service Provider", "A1"),
    ],
)
def test_infer_band(designation, band):
    assert infer_band(designation) == band


def test_invalid_band_is_inferred_valid_band_kept():
    ctx = _ctx()
    inferred = repair_row(NormalizedRow(first_name="A", last_name="B", band="X9", designation="Director", annual_fixed=1.0), 0, ctx)
    kept = repair_row(NormalizedRow(first_name="A", last_name="B", band="M2", designation="Director", annual_fixed=1.0), 1, ctx)
    assert inferred.band == "D1"
    assert kept.band == "M2"


def test_functionally_empty_rows_are_dropped_silently():
    rows = [
        NormalizedRow(department="Sales", extras={"Note": "123"}),
        NormalizedRow(first_name="Asha"),
        NormalizedRow(annual_ctc=900000.0),
        NormalizedRow(extras={"Who": "Ravi Kumar"}),
    ]
    assert is_functionally_empty(rows[0])
    repaired = repair_rows(rows, _ctx())
    assert [r.position for r in repaired] == [1, 2, 3]
    assert [r.row_number for r in repaired] == [3, 4, 5]
