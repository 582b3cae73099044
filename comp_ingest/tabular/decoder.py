from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

import pandas as pd

from ..models.rows import RawRow

logger = logging.getLogger(__name__)

"""Tabular decoder: upload bytes -> header list + RawRows.

- The first bytes decide the format (ZIP container -> xlsx, OLE2 -> xls);
  the declared MIME type is only a hint because browsers label CSV files
  as spreadsheets and vice versa.
- For workbooks the sheet with the most non-empty data rows wins.
- The first row is the header row. Entirely blank rows are dropped.
- Anything that cannot be decoded raises InvalidFormatError (INVALID_FORMAT).
"""

__all__ = [
    "XLSX_SIGNATURE",
    "OLE2_SIGNATURE",
    "UploadRejectedError",
    "InvalidFormatError",
    "DecodedTable",
    "detect_format",
    "decode_upload",
]

XLSX_SIGNATURE = b"PK\x03\x04"
OLE2_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"

SPREADSHEET_MIME_TYPES = frozenset({
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
    "application/octet-stream",
})

_CSV_DELIMITERS = ",;\t|"
_TEXT_ENCODINGS = ("utf-8-sig", "cp1252", "latin-1")


class UploadRejectedError(Exception):
    """Run-fatal rejection of an upload. ``code`` is the machine readable reason."""
    code = "UPLOAD_REJECTED"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidFormatError(UploadRejectedError):
    code = "INVALID_FORMAT"


@dataclass
class DecodedTable:
    columns: list[str]
    rows: list[RawRow]
    source_format: str  # csv / xlsx / xls
    sheet_name: str | None = None
    sheet_row_counts: dict[str, int] = field(default_factory=dict)


def detect_format(data: bytes, content_type: str | None = None) -> str:
    """Return "xlsx", "xls" or "csv" based on the leading bytes.

    The declared content type never overrides a binary signature; a
    spreadsheet MIME type on plain text falls through to CSV.
    """
    if data.startswith(XLSX_SIGNATURE):
        return "xlsx"
    if data.startswith(OLE2_SIGNATURE):
        return "xls"
    if content_type and content_type.split(";")[0].strip().lower() in SPREADSHEET_MIME_TYPES:
        logger.debug("declared %s but content is delimited text, decoding as CSV", content_type)
    return "csv"


def _clean_cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, (datetime, date)):
        return value
    if isinstance(value, str):
        return value.strip()
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        return value
    # numpy scalars -> python scalars
    if hasattr(value, "item"):
        return value.item()
    return value


def _is_blank(value: Any) -> bool:
    return isinstance(value, str) and value == ""


def _dedupe_headers(raw_headers: list[Any]) -> list[str]:
    headers: list[str] = []
    seen: dict[str, int] = {}
    for idx, raw in enumerate(raw_headers):
        name = _clean_cell(raw)
        name = str(name).strip() if not _is_blank(name) else f"Unnamed: {idx}"
        if isinstance(raw, float) and float(raw).is_integer():
            name = str(int(raw))
        if name in seen:
            seen[name] += 1
            name = f"{name}.{seen[name]}"
        else:
            seen[name] = 0
        headers.append(name)
    return headers


def _rows_from_frame(df: pd.DataFrame, columns: list[str]) -> list[RawRow]:
    rows: list[RawRow] = []
    for raw in df.itertuples(index=False, name=None):
        row = {col: _clean_cell(val) for col, val in zip(columns, raw, strict=False)}
        if all(_is_blank(v) for v in row.values()):
            continue
        rows.append(row)
    return rows


def _decode_text(data: bytes) -> str:
    for encoding in _TEXT_ENCODINGS:
        try:
            text = data.decode(encoding)
        except UnicodeDecodeError:
            continue
        if "\x00" in text:
            break
        return text
    raise InvalidFormatError("Invalid file format. Please upload a valid CSV or Excel file.")


def _sniff_delimiter(text: str) -> str:
    sample = "\n".join(text.splitlines()[:5])
    try:
        return csv.Sniffer().sniff(sample, delimiters=_CSV_DELIMITERS).delimiter
    except csv.Error:
        return ","


def _decode_csv(data: bytes) -> DecodedTable:
    text = _decode_text(data)
    if not text.strip():
        return DecodedTable(columns=[], rows=[], source_format="csv")
    try:
        df = pd.read_csv(
            io.StringIO(text),
            sep=_sniff_delimiter(text),
            index_col=False,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            skipinitialspace=True,
        )
    except pd.errors.EmptyDataError:
        return DecodedTable(columns=[], rows=[], source_format="csv")
    except (pd.errors.ParserError, ValueError) as e:
        raise InvalidFormatError(f"Invalid file format: {e}") from e
    columns = [str(c).strip() for c in df.columns]
    return DecodedTable(columns=columns, rows=_rows_from_frame(df, columns), source_format="csv")


def _decode_workbook(data: bytes, source_format: str) -> DecodedTable:
    engine = "openpyxl" if source_format == "xlsx" else "xlrd"
    try:
        xls = pd.ExcelFile(io.BytesIO(data), engine=engine)
        # header=None: the first row is read as data and promoted below
        frames = {str(name): xls.parse(name, header=None, dtype=object) for name in xls.sheet_names}
    except Exception as e:
        raise InvalidFormatError(f"Invalid file format: {e}") from e

    best: DecodedTable | None = None
    counts: dict[str, int] = {}
    for name, df in frames.items():
        if df.shape[0] == 0:
            counts[name] = 0
            continue
        columns = _dedupe_headers(df.iloc[0].tolist())
        rows = _rows_from_frame(df.iloc[1:], columns)
        counts[name] = len(rows)
        if best is None or len(rows) > len(best.rows):
            best = DecodedTable(columns=columns, rows=rows, source_format=source_format, sheet_name=name)

    if best is None:
        return DecodedTable(columns=[], rows=[], source_format=source_format, sheet_row_counts=counts)
    best.sheet_row_counts = counts
    return best


def decode_upload(data: bytes, content_type: str | None = None) -> DecodedTable:
    """Decode an uploaded CSV / spreadsheet buffer.

    Raises:
        InvalidFormatError: the byte stream is empty or not decodable
    """
    if not data:
        raise InvalidFormatError("Invalid file format. The uploaded file is empty.")
    source_format = detect_format(data, content_type)
    if source_format == "csv":
        return _decode_csv(data)
    return _decode_workbook(data, source_format)
