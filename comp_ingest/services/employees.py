from __future__ import annotations

from dataclasses import dataclass

from ..db.store import EmployeeStore
from ..models.employee import EmployeeRecord
from .derived import DerivedFieldCalculator
from .fanout import CacheInvalidationOutcome, CacheInvalidator

"""Single-record save path (create or edit one employee outside an import)."""

__all__ = ["SaveOutcome", "save_employee"]


@dataclass(frozen=True)
class SaveOutcome:
    record: EmployeeRecord
    cache: CacheInvalidationOutcome


def save_employee(
    store: EmployeeStore,
    record: EmployeeRecord,
    calculator: DerivedFieldCalculator,
    cache: CacheInvalidator,
) -> SaveOutcome:
    """Upsert one record, recompute its derived fields, clear compensation caches.

    Stored AI insights are left alone; only imports expire them.
    """
    stored = store.upsert_employee(record)
    derived = calculator.recompute_record(stored)
    return SaveOutcome(record=stored.with_derived(derived), cache=cache.invalidate_compensation())
