from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_EMAIL_DOMAIN,
    DEFAULT_FALLBACK_ANNUAL_FIXED,
    DEFAULT_MAX_ROWS,
    AppConfig,
    DatabaseConfig,
    ImportSettings,
    RedisConfig,
)

"""Config loader.

Responsibilities:
- Load YAML config/import.yml
- Validate against the JSON schema shipped next to this module
- Apply defaults for the optional sections
"""

SCHEMA_PATH = Path(__file__).with_name("import_schema.json")
DEFAULT_CONFIG_PATH = Path("config/import.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or the
            config data fails validation (missing keys, wrong types, extra keys).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _import_settings(raw: dict[str, Any]) -> ImportSettings:
    return ImportSettings(
        max_rows=raw.get("max_rows", DEFAULT_MAX_ROWS),
        batch_size=raw.get("batch_size", DEFAULT_BATCH_SIZE),
        email_domain=raw.get("email_domain", DEFAULT_EMAIL_DOMAIN),
        fallback_annual_fixed=float(raw.get("fallback_annual_fixed", DEFAULT_FALLBACK_ANNUAL_FIXED)),
        date_order=raw.get("date_order", "dmy"),
        error_log_dir=raw.get("error_log_dir", "./logs"),
        band_recompute_workers=raw.get("band_recompute_workers", 4),
    )


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config validation failed: top level must be a mapping")

    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    redis_raw = data.get("redis") or {}
    return AppConfig(
        organization_id=data["organization_id"],
        database=db,
        redis=RedisConfig(url=redis_raw.get("url")),
        import_settings=_import_settings(data.get("import") or {}),
    )
