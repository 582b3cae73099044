from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the compensation import tool.

Filled by comp_ingest.config.loader from config/import.yml. Environment
variables take precedence over the database / redis sections at connect time.
"""

DEFAULT_MAX_ROWS = 1000
DEFAULT_BATCH_SIZE = 10
DEFAULT_EMAIL_DOMAIN = "company.com"
DEFAULT_FALLBACK_ANNUAL_FIXED = 500000.0  # 5L floor when no compensation figure is usable


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection fallback used when DATABASE_URL / PG* are not set."""
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class RedisConfig:
    url: str | None = None


@dataclass(frozen=True)
class ImportSettings:
    """Knobs for a single import run."""
    max_rows: int = DEFAULT_MAX_ROWS  # hard cap on data rows per upload
    batch_size: int = DEFAULT_BATCH_SIZE  # rows per progress sub-batch
    email_domain: str = DEFAULT_EMAIL_DOMAIN  # domain for synthesized emails
    fallback_annual_fixed: float = DEFAULT_FALLBACK_ANNUAL_FIXED
    # Organization-wide reading of NN/NN/YYYY dates
    date_order: str = "dmy"
    error_log_dir: str | None = "./logs"
    band_recompute_workers: int = 4


@dataclass(frozen=True)
class AppConfig:
    """Root configuration object."""
    organization_id: str = "default"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    import_settings: ImportSettings = field(default_factory=ImportSettings)
