from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

from ..db.store import EmployeeStore
from ..models.employee import SalaryBand
from .derived import DerivedFieldCalculator
from .fanout import CacheInvalidationOutcome, CacheInvalidator

"""Salary band edits.

Saving a band configuration changes compa-ratio and penetration for every
ACTIVE employee on that band code. Those are recomputed concurrently on a
thread pool; one employee's failure is recorded and does not hold up the
others.

Band edits are not serialized against a running import. Both paths write
derived fields through the same calculator, so the last write wins.
"""

__all__ = [
    "BandUpdateOutcome",
    "update_salary_band",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BandUpdateOutcome:
    band: SalaryBand
    updated: int = 0
    failures: dict[str, str] = field(default_factory=dict)
    cache: CacheInvalidationOutcome = field(default_factory=CacheInvalidationOutcome)

    @property
    def degraded(self) -> bool:
        return bool(self.failures) or self.cache.degraded


def update_salary_band(
    store: EmployeeStore,
    band: SalaryBand,
    calculator: DerivedFieldCalculator,
    cache: CacheInvalidator,
    *,
    max_workers: int = 4,
) -> BandUpdateOutcome:
    """Save ``band`` and recompute derived fields of the employees on it.

    Raises:
        StoreError: the band itself could not be saved (nothing recomputed)
    """
    saved = store.save_salary_band(band)
    employee_ids = store.active_employee_ids_for_band(saved.band_code)
    logger.info("band %s saved, recomputing %d employees", saved.band_code, len(employee_ids))

    updated = 0
    failures: dict[str, str] = {}
    if employee_ids:
        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
            futures = {pool.submit(calculator.recompute, eid): eid for eid in employee_ids}
            for future in as_completed(futures):
                eid = futures[future]
                try:
                    if future.result() is not None:
                        updated += 1
                except Exception as e:
                    failures[eid] = str(e)
                    logger.warning("derived recompute failed employee=%s: %s", eid, e)

    return BandUpdateOutcome(
        band=saved,
        updated=updated,
        failures=failures,
        cache=cache.invalidate_compensation(),
    )
