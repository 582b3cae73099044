# Shared pytest fixtures
from __future__ import annotations

import io
import tempfile
from datetime import UTC, date, datetime
from pathlib import Path

import fakeredis
import pandas as pd
import pytest

from comp_ingest.db.memory_store import MemoryEmployeeStore
from comp_ingest.logging.init import reset_logging
from comp_ingest.models.config_models import ImportSettings
from comp_ingest.models.employee import EmployeeRecord, SalaryBand
from comp_ingest.services.fanout import CacheInvalidator
from comp_ingest.services.notifications import NotificationHub
from comp_ingest.services.orchestrator import ImportDependencies

FIXED_NOW = datetime(2025, 3, 15, 9, 30, tzinfo=UTC)



@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture(autouse=True)
def _fresh_logging():
    # handlers bind sys.stdout at setup time; capsys swaps it per test
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def sample_config_yaml() -> str:
    return """organization_id: acme
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
redis:
  url: null
import:
  max_rows: 1000
  batch_size: 10
  email_domain: company.com
  date_order: dmy
  error_log_dir: ./logs
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def bands() -> list[SalaryBand]:
    return [
        SalaryBand("A2", 500000, 700000, 900000),
        SalaryBand("P1", 1000000, 1200000, 1400000),
        SalaryBand("P1", 1500000, 1800000, 2100000, job_area="Data"),
        SalaryBand("M1", 2000000, 2500000, 3000000),
    ]


@pytest.fixture()
def store(bands) -> MemoryEmployeeStore:
    return MemoryEmployeeStore("acme", bands=bands)


@pytest.fixture()
def fake_redis():
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture()
def hub_messages() -> tuple[NotificationHub, list[tuple[str, dict]]]:
    hub = NotificationHub()
    messages: list[tuple[str, dict]] = []
    hub.subscribe(lambda event, payload: messages.append((event, payload)))
    return hub, messages


@pytest.fixture()
def deps(store, hub_messages, fake_redis, tmp_path) -> ImportDependencies:
    hub, _ = hub_messages
    return ImportDependencies(
        store=store,
        hub=hub,
        cache=CacheInvalidator(fake_redis),
        settings=ImportSettings(error_log_dir=str(tmp_path / "logs")),
        clock=lambda: FIXED_NOW,
    )


def make_record(employee_id: str = "EMP001", **overrides) -> EmployeeRecord:
    values = dict(
        employee_id=employee_id,
        first_name="Priya",
        last_name="Sharma",
        email=f"{employee_id.lower()}@company.com",
        department="Engineering",
        designation="Software Engineer",
        date_of_joining=date(2024, 1, 15),
        gender="FEMALE",
        band="P1",
        grade="P1",
        annual_fixed=1200000.0,
        variable_pay=120000.0,
        annual_ctc=1380000.0,
    )
    values.update(overrides)
    return EmployeeRecord(**values)


def csv_bytes(header: list[str], rows: list[list[object]], sep: str = ",") -> bytes:
    df = pd.DataFrame(rows, columns=header)
    return df.to_csv(index=False, sep=sep).encode("utf-8")


def xlsx_bytes(sheets: dict[str, list[list[object]]]) -> bytes:
    """Workbook bytes; each sheet is written as raw rows (first row = header)."""
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        for name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=name, header=False, index=False)
    return buf.getvalue()


@pytest.fixture()
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture()
def make_employee():
    return make_record


@pytest.fixture()
def build_csv():
    return csv_bytes


@pytest.fixture()
def build_xlsx():
    return xlsx_bytes
