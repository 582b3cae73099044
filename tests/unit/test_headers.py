from __future__ import annotations

import pytest

from comp_ingest.canonical.headers import (
    FULL_NAME,
    canonicalize_row,
    canonicalize_rows,
    normalize_header_key,
    resolve_header,
    split_full_name,
)


@pytest.mark.parametrize("header", ["Emp No", "employee_id", "Staff ID", "Emp ID", "staff_no", "Associate Identifier"])
def test_identifier_aliases(header):
    assert resolve_header(header) == "employee_id"


@pytest.mark.parametrize(
    "header,field",
    [
        ("E-mail Address", "email"),
        ("Dept.", "department"),
        ("Job Title", "designation"),
        ("Date of Joining", "date_of_joining"),
        ("DOJ", "date_of_joining"),
        ("Fixed CTC", "annual_fixed"),
        ("Total CTC", "annual_ctc"),
        ("Variable Pay", "variable_pay"),
        ("Work Mode", "work_mode"),
        ("Reporting Manager Email", "reporting_manager_email"),
        ("Cost Centre", "cost_center"),
        ("Pay Grade", "grade"),
        ("Employment Type", "employment_type"),
    ],
)
def test_field_aliases(header, field):
    assert resolve_header(header) == field


def test_full_name_aliases_resolve_to_split_rule():
    assert resolve_header("Employee Name") == FULL_NAME
    assert resolve_header("Full Name") == FULL_NAME


def test_unknown_header_is_none():
    assert resolve_header("Favourite Colour") is None


def test_normalize_header_key_strips_separators():
    assert normalize_header_key("  Emp_No. ") == "empno"
    assert normalize_header_key("Date-of Joining") == "dateofjoining"


def test_split_full_name():
    assert split_full_name("Priya Sharma Rao") == ("Priya", "Sharma Rao")
    assert split_full_name("Madonna") == ("Madonna", "Madonna")
    assert split_full_name("   ") is None


def test_same_rows_under_different_identifier_headers():
    variants = ["Emp No", "employee_id", "Staff ID"]
    ids = [canonicalize_row({h: "E100", "Name": "Asha Rao"}).employee_id for h in variants]
    assert ids == ["E100", "E100", "E100"]


def test_full_name_fills_first_and_last():
    row = canonicalize_row({"Employee Name": "Asha Rao", "Emp ID": "E1"})
    assert (row.first_name, row.last_name) == ("Asha", "Rao")


def test_explicit_first_name_wins_over_full_name():
    row = canonicalize_row({"Name": "Asha Rao", "First Name": "Ashwini"})
    assert row.first_name == "Ashwini"
    assert row.last_name == "Rao"


def test_blank_explicit_first_name_does_not_block_full_name():
    row = canonicalize_row({"First Name": "", "Full Name": "Asha Rao"})
    assert row.first_name == "Asha"


def test_first_non_blank_column_wins():
    row = canonicalize_row({"Email": "", "Work Email": "a@x.com", "Official Email": "b@x.com"})
    assert row.email == "a@x.com"


def test_unknown_columns_preserved_in_extras():
    row = canonicalize_row({"Emp ID": "E1", "Hobby": "Chess", "Remarks": ""})
    assert row.extras == {"Hobby": "Chess", "Remarks": ""}
    assert row.present_fields() == {"employee_id"}


def test_canonicalize_rows_never_fails_on_odd_values():
    rows = canonicalize_rows([{}, {"Name": 42}, {"DOJ": None}])
    assert len(rows) == 3
    assert rows[1].first_name == "42"
    assert rows[2].date_of_joining is None
