from __future__ import annotations

from datetime import datetime

import pytest

from comp_ingest.tabular.decoder import (
    OLE2_SIGNATURE,
    InvalidFormatError,
    decode_upload,
    detect_format,
)

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def test_detect_format_by_signature():
    assert detect_format(b"PK\x03\x04rest", "text/csv") == "xlsx"
    assert detect_format(OLE2_SIGNATURE + b"\x00" * 8, None) == "xls"
    assert detect_format(b"a,b\n1,2\n", "text/csv") == "csv"


def test_detect_format_spreadsheet_mime_on_text_is_csv():
    # Some browsers label CSV uploads as Excel
    assert detect_format(b"Emp ID,Name\n1,Asha\n", XLSX_MIME) == "csv"
    assert detect_format(b"Emp ID,Name\n1,Asha\n", "application/vnd.ms-excel") == "csv"


def test_decode_csv_mislabelled_as_excel():
    table = decode_upload(b"Emp ID,Name\nE1,Asha Rao\n", XLSX_MIME)
    assert table.source_format == "csv"
    assert table.columns == ["Emp ID", "Name"]
    assert table.rows == [{"Emp ID": "E1", "Name": "Asha Rao"}]


def test_decode_csv_drops_blank_rows_and_trims(build_csv):
    data = build_csv(["Emp ID", "Name"], [["E1", "  Asha  "], [None, None], ["E2", "Ravi"]])
    table = decode_upload(data, "text/csv")
    assert [r["Emp ID"] for r in table.rows] == ["E1", "E2"]
    assert table.rows[0]["Name"] == "Asha"


def test_decode_csv_semicolon_delimiter_and_bom():
    data = b"\xef\xbb\xbfEmp ID;Name;Salary\nE1;Asha;12,00,000\n"
    table = decode_upload(data, "text/csv")
    assert table.columns == ["Emp ID", "Name", "Salary"]
    assert table.rows[0]["Salary"] == "12,00,000"


def test_decode_csv_trailing_delimiter_on_data_rows_keeps_columns_aligned():
    data = b"Emp ID,First Name,Last Name,Salary\nE1,Asha,Rao,1200000,\nE2,Ravi,Kumar,900000,\n"
    table = decode_upload(data, "text/csv")
    assert table.columns == ["Emp ID", "First Name", "Last Name", "Salary"]
    assert table.rows[0] == {"Emp ID": "E1", "First Name": "Asha", "Last Name": "Rao", "Salary": "1200000"}
    assert table.rows[1]["Emp ID"] == "E2"


def test_decode_csv_latin1_fallback():
    data = "Name,City\nJos\xe9,M\xfcnchen\n".encode("latin-1")
    table = decode_upload(data, "text/csv")
    assert table.rows[0]["Name"] == "José"


def test_decode_csv_keeps_na_strings_as_text():
    table = decode_upload(b"Name,Gender\nAsha,NA\n", "text/csv")
    assert table.rows[0]["Gender"] == "NA"


def test_decode_header_only_csv_has_no_rows():
    table = decode_upload(b"Emp ID,Name\n", "text/csv")
    assert table.columns == ["Emp ID", "Name"]
    assert table.rows == []


def test_decode_xlsx_picks_sheet_with_most_rows(build_xlsx):
    data = build_xlsx({
        "Readme": [["Note"], ["Fill the Employees sheet"]],
        "Employees": [
            ["Emp ID", "Name", "DOJ", "Fixed CTC"],
            ["E1", "Asha Rao", datetime(2024, 1, 15), 1200000],
            [None, None, None, None],
            ["E2", "Ravi Kumar", datetime(2023, 6, 1), 800000],
        ],
    })
    table = decode_upload(data, XLSX_MIME)
    assert table.source_format == "xlsx"
    assert table.sheet_name == "Employees"
    assert table.sheet_row_counts == {"Readme": 1, "Employees": 2}
    assert table.columns == ["Emp ID", "Name", "DOJ", "Fixed CTC"]
    first = table.rows[0]
    assert first["Emp ID"] == "E1"
    assert first["Fixed CTC"] == 1200000
    assert isinstance(first["DOJ"], datetime)


def test_decode_xlsx_even_when_declared_as_csv(build_xlsx):
    data = build_xlsx({"Sheet1": [["Name"], ["Asha"]]})
    table = decode_upload(data, "text/csv")
    assert table.source_format == "xlsx"
    assert table.rows == [{"Name": "Asha"}]


def test_decode_xlsx_duplicate_headers_are_suffixed(build_xlsx):
    data = build_xlsx({"Sheet1": [["Name", "Name", None], ["Asha", "Rao", "x"]]})
    table = decode_upload(data, XLSX_MIME)
    assert table.columns == ["Name", "Name.1", "Unnamed: 2"]


def test_decode_corrupt_workbook_raises_invalid_format():
    with pytest.raises(InvalidFormatError) as e:
        decode_upload(b"PK\x03\x04 definitely not a zip archive", XLSX_MIME)
    assert e.value.code == "INVALID_FORMAT"


def test_decode_binary_garbage_raises_invalid_format():
    with pytest.raises(InvalidFormatError):
        decode_upload(b"\x00\x01\x02\x03binary", "application/octet-stream")


def test_decode_empty_bytes_raises_invalid_format():
    with pytest.raises(InvalidFormatError):
        decode_upload(b"", "text/csv")
