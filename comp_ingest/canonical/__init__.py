"""Pure row stages: header canonicalization, value normalization, repair."""

from .headers import canonicalize_row, canonicalize_rows, resolve_header
from .repair import IdentifierSequence, RepairContext, infer_band, repair_row, repair_rows
from .values import normalize_row, normalize_rows, parse_currency, parse_date

__all__ = [
    "canonicalize_row",
    "canonicalize_rows",
    "resolve_header",
    "IdentifierSequence",
    "RepairContext",
    "infer_band",
    "repair_row",
    "repair_rows",
    "normalize_row",
    "normalize_rows",
    "parse_currency",
    "parse_date",
]
