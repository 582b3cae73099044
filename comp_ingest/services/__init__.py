from .bands import BandUpdateOutcome, update_salary_band
from .benefits import EnrollmentOutcome, auto_enroll_benefits
from .derived import DerivedFieldCalculator, compute_derived
from .employees import save_employee
from .fanout import CacheError, CacheInvalidationOutcome, CacheInvalidator
from .notifications import NotificationHub, RedisChannelPublisher
from .orchestrator import (
    EmptyUploadError,
    ImportDependencies,
    ImportJob,
    ImportRunReport,
    TooManyRowsError,
    prepare_upload,
    run_import,
    start_import,
)
from .template import generate_template
from .writer import ReconciliationWriter

__all__ = [
    "BandUpdateOutcome",
    "update_salary_band",
    "EnrollmentOutcome",
    "auto_enroll_benefits",
    "DerivedFieldCalculator",
    "compute_derived",
    "save_employee",
    "CacheError",
    "CacheInvalidationOutcome",
    "CacheInvalidator",
    "NotificationHub",
    "RedisChannelPublisher",
    "EmptyUploadError",
    "ImportDependencies",
    "ImportJob",
    "ImportRunReport",
    "TooManyRowsError",
    "prepare_upload",
    "run_import",
    "start_import",
    "generate_template",
    "ReconciliationWriter",
]
