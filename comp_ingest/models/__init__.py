"""Domain models for the compensation import pipeline."""

from .config_models import AppConfig, DatabaseConfig, ImportSettings, RedisConfig
from .employee import (
    VALID_BANDS,
    BenefitPlan,
    DerivedFields,
    EmployeeRecord,
    ImportMode,
    SalaryBand,
)
from .error_record import ErrorRecord, RowError
from .import_result import ImportAccepted, ImportProgress, ImportRunResult
from .rows import CanonicalRow, NormalizedRow, RepairedRow

__all__ = [
    # Configuration models
    "AppConfig",
    "DatabaseConfig",
    "ImportSettings",
    "RedisConfig",
    # Store entities
    "VALID_BANDS",
    "BenefitPlan",
    "DerivedFields",
    "EmployeeRecord",
    "ImportMode",
    "SalaryBand",
    # Run results
    "ErrorRecord",
    "RowError",
    "ImportAccepted",
    "ImportProgress",
    "ImportRunResult",
    # Stage rows
    "CanonicalRow",
    "NormalizedRow",
    "RepairedRow",
]
