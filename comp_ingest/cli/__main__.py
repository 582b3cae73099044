from __future__ import annotations

import argparse
import logging
import mimetypes
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

from comp_ingest.canonical.headers import resolve_header
from comp_ingest.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from comp_ingest.db.memory_store import MemoryEmployeeStore
from comp_ingest.db.postgres_store import PostgresEmployeeStore, connect
from comp_ingest.db.store import EmployeeStore, StoreError
from comp_ingest.logging.init import log_summary, setup_logging
from comp_ingest.models.config_models import AppConfig, DatabaseConfig
from comp_ingest.models.employee import VALID_BANDS, ImportMode, SalaryBand
from comp_ingest.services.bands import update_salary_band
from comp_ingest.services.derived import DerivedFieldCalculator
from comp_ingest.services.fanout import CacheInvalidator
from comp_ingest.services.notifications import NotificationHub, RedisChannelPublisher
from comp_ingest.services.orchestrator import ImportDependencies, prepare_upload, start_import
from comp_ingest.services.progress import RowProgressBar
from comp_ingest.services.summary import render_summary_line
from comp_ingest.services.template import generate_template
from comp_ingest.tabular.decoder import UploadRejectedError

"""comp-ingest command line.

Subcommands:
- import FILE [--mode upsert|replace] [--yes]
- inspect FILE       print detected columns, their mapping and sample rows
- template [--output PATH]
- band-update CODE --min --mid --max [--job-area AREA]

Connection settings resolve in this order: `.env` (loaded with override),
process environment (DATABASE_URL / PGDSN, then PGHOST / PGPORT / PGUSER /
PGPASSWORD / PGDATABASE), then the config file. DISABLE_DB_CONNECT=1, or an
unreachable database, switches to an in-memory store (mock mode).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

SUMMARY_PREFIX = "SUMMARY "


def _resolve_dsn(db_cfg: DatabaseConfig) -> str:
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _open_store(cfg: AppConfig, logger: logging.Logger) -> Iterator[tuple[EmployeeStore, str]]:
    """Yield (store, mode) where mode is "live" or "mock"."""
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
        yield MemoryEmployeeStore(cfg.organization_id), "mock"
        return
    try:
        conn = connect(_resolve_dsn(cfg.database))
    except psycopg2.Error as e:
        logger.info(f"DB connection failed -> fallback to mock mode: {str(e).strip()}")
        yield MemoryEmployeeStore(cfg.organization_id), "mock"
        return
    store = PostgresEmployeeStore(conn, cfg.organization_id)
    try:
        store.initialize_schema()
    except StoreError as e:
        store.close()
        logger.info(f"DB schema setup failed -> fallback to mock mode: {e}")
        yield MemoryEmployeeStore(cfg.organization_id), "mock"
        return
    try:
        yield store, "live"
    finally:
        store.close()


def _redis_url(cfg: AppConfig) -> str | None:
    return os.getenv("REDIS_URL") or cfg.redis.url


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; its values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="comp-ingest", description="Employee compensation bulk importer")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to import.yml")
    sub = p.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Import a CSV / Excel file")
    imp.add_argument("file", type=Path)
    imp.add_argument("--mode", choices=[m.value for m in ImportMode], default=ImportMode.UPSERT.value)
    imp.add_argument("--yes", action="store_true", help="Confirm replace mode (deletes existing employees)")

    ins = sub.add_parser("inspect", help="Show detected columns and sample rows, write nothing")
    ins.add_argument("file", type=Path)

    tpl = sub.add_parser("template", help="Write the import template CSV")
    tpl.add_argument("--output", type=Path, default=None)

    band = sub.add_parser("band-update", help="Save a salary band and recompute affected employees")
    band.add_argument("band_code", choices=VALID_BANDS)
    band.add_argument("--min", dest="min_salary", type=float, required=True)
    band.add_argument("--mid", dest="mid_salary", type=float, required=True)
    band.add_argument("--max", dest="max_salary", type=float, required=True)
    band.add_argument("--job-area", default=None)
    return p


def _read_upload(path: Path) -> tuple[bytes, str | None]:
    content_type, _ = mimetypes.guess_type(path.name)
    return path.read_bytes(), content_type


def _cmd_template(args: argparse.Namespace, logger: logging.Logger) -> int:
    text = generate_template()
    if args.output is None:
        sys.stdout.write(text)
        return EXIT_SUCCESS_ALL
    try:
        args.output.write_text(text, encoding="utf-8")
    except OSError as e:
        logger.error(f"template: {e}")
        return EXIT_FATAL
    logger.info(f"template written to {args.output}")
    return EXIT_SUCCESS_ALL


def _cmd_inspect(args: argparse.Namespace, cfg: AppConfig, logger: logging.Logger) -> int:
    try:
        data, content_type = _read_upload(args.file)
        prepared = prepare_upload(data, content_type, cfg.import_settings, upload_name=args.file.name)
    except OSError as e:
        logger.error(f"inspect: {e}")
        return EXIT_FATAL
    except UploadRejectedError as e:
        logger.error(f"inspect: {e.code} {e.message}")
        return EXIT_FATAL
    print(f"FILE: {args.file.name} format={prepared.source_format} sheet={prepared.sheet_name} rows={prepared.total}")
    for column in prepared.columns:
        print(f"  COLUMN: {column!r} -> {resolve_header(column) or '(extra)'}")
    for row in prepared.rows[:3]:
        print("    sample_row=", {k: v for k, v in vars(row).items() if v not in (None, 0.0, {})})
    return EXIT_SUCCESS_ALL


def _cmd_import(args: argparse.Namespace, cfg: AppConfig, logger: logging.Logger) -> int:
    mode = ImportMode.parse(args.mode)
    if mode is ImportMode.REPLACE and not args.yes:
        logger.error("replace mode deletes every existing employee; re-run with --yes to confirm")
        return EXIT_FATAL
    try:
        data, content_type = _read_upload(args.file)
    except OSError as e:
        logger.error(f"import: {e}")
        return EXIT_FATAL

    hub = NotificationHub()
    redis_url = _redis_url(cfg)
    if redis_url:
        hub.subscribe(RedisChannelPublisher.from_url(redis_url, cfg.organization_id))

    with _open_store(cfg, logger) as (store, db_mode):
        deps = ImportDependencies(
            store=store,
            hub=hub,
            cache=CacheInvalidator.from_url(redis_url),
            settings=cfg.import_settings,
        )
        try:
            accepted, job = start_import(data, content_type, mode, deps, upload_name=args.file.name)
        except UploadRejectedError as e:
            logger.error(f"import: {e.code} {e.message}")
            return EXIT_FATAL
        logger.info(accepted.message)

        with RowProgressBar(accepted.total) as bar:
            unsubscribe = hub.subscribe(bar)
            try:
                try:
                    report = job.result()
                except KeyboardInterrupt:
                    logger.info("interrupt received, stopping at the next batch boundary")
                    job.cancel()
                    report = job.result()
            except StoreError as e:
                logger.error(f"import: {e}")
                return EXIT_FATAL
            finally:
                unsubscribe()

    result = report.result
    logger.info(f"mode={db_mode} imported={result.imported} failed={result.failed} skipped={report.skipped_rows}")
    if report.error_log_path is not None:
        logger.info(f"row errors written to {report.error_log_path}")
    log_summary(render_summary_line(result)[len(SUMMARY_PREFIX):])

    if result.failed > 0 or result.cancelled:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _cmd_band_update(args: argparse.Namespace, cfg: AppConfig, logger: logging.Logger) -> int:
    band = SalaryBand(
        band_code=args.band_code,
        min_salary=args.min_salary,
        mid_salary=args.mid_salary,
        max_salary=args.max_salary,
        job_area=args.job_area,
    )
    with _open_store(cfg, logger) as (store, db_mode):
        try:
            outcome = update_salary_band(
                store,
                band,
                DerivedFieldCalculator(store),
                CacheInvalidator.from_url(_redis_url(cfg)),
                max_workers=cfg.import_settings.band_recompute_workers,
            )
        except StoreError as e:
            logger.error(f"band-update: {e}")
            return EXIT_FATAL
    logger.info(f"mode={db_mode} band={band.band_code} recomputed={outcome.updated} failed={len(outcome.failures)}")
    return EXIT_PARTIAL_FAILURE if outcome.failures else EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # An explicit [] must not fall back to sys.argv
    if argv is None:
        argv = sys.argv[1:]
    args = _build_parser().parse_args(argv)

    if args.debug:
        for h in logger.handlers:
            h.setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
        logger.debug("debug mode enabled")

    if args.command == "template":
        return _cmd_template(args, logger)

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.command == "inspect":
        return _cmd_inspect(args, cfg, logger)
    if args.command == "band-update":
        return _cmd_band_update(args, cfg, logger)
    return _cmd_import(args, cfg, logger)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
