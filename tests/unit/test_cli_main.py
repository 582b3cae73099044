from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import psycopg2
import pytest

from comp_ingest.cli import main as cli_main

HEADER = ["Emp ID", "Name", "Email", "Band", "Fixed CTC"]


@pytest.fixture(autouse=True)
def _offline(monkeypatch):
    for var in ("DATABASE_URL", "PGDSN", "REDIS_URL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")


@pytest.fixture()
def upload_file(temp_workdir: Path, build_csv):
    def _write(rows, name: str = "staff.csv") -> Path:
        path = temp_workdir / "data" / name
        path.write_bytes(build_csv(HEADER, rows))
        return path
    return _write


def test_template_to_stdout_needs_no_config(temp_workdir: Path, capsys):
    code = cli_main(["template"])
    out = capsys.readouterr().out
    assert code == 0
    assert out.startswith("employeeId,firstName,lastName,email,")


def test_template_to_file(temp_workdir: Path, capsys):
    target = temp_workdir / "template.csv"
    assert cli_main(["template", "--output", str(target)]) == 0
    assert target.read_text(encoding="utf-8").count("\n") == 3
    assert "INFO template written to" in capsys.readouterr().out


def test_missing_config_is_fatal(temp_workdir: Path, upload_file, capsys):
    upload = upload_file([["E1", "Asha Rao", "asha@acme.io", "P1", "1200000"]])
    assert cli_main(["import", str(upload)]) == 1
    assert "ERROR config: config file not found" in capsys.readouterr().out


def test_import_all_rows_success(write_config, temp_workdir: Path, upload_file, capsys):
    upload = upload_file([
        ["E1", "Asha Rao", "asha@acme.io", "P1", "12,00,000"],
        ["E2", "Ravi Kumar", "ravi@acme.io", "A2", "8L"],
    ])
    code = cli_main(["import", str(upload)])
    out = capsys.readouterr().out
    assert code == 0
    assert "INFO Processing 2 employees. Watch progress via real-time updates." in out
    assert "SUMMARY imported=2 failed=0 total=2 replaced=false cancelled=false" in out
    assert "mode=mock" in out


def test_import_with_row_errors_is_partial(write_config, temp_workdir: Path, upload_file, capsys):
    upload = upload_file([
        ["E1", "Asha Rao", "dup@acme.io", "P1", "1200000"],
        ["E2", "Ravi Kumar", "dup@acme.io", "A2", "800000"],
    ])
    code = cli_main(["import", str(upload)])
    out = capsys.readouterr().out
    assert code == 2
    assert "WARN Row 3 failed: Duplicate email: dup@acme.io" in out
    assert "SUMMARY imported=1 failed=1 total=2" in out
    assert list((temp_workdir / "logs").glob("import-errors-*.log"))


def test_replace_requires_confirmation(write_config, temp_workdir: Path, upload_file, capsys):
    upload = upload_file([["E1", "Asha Rao", "asha@acme.io", "P1", "1200000"]])
    assert cli_main(["import", str(upload), "--mode", "replace"]) == 1
    assert "re-run with --yes" in capsys.readouterr().out


def test_replace_confirmed(write_config, temp_workdir: Path, upload_file, capsys):
    upload = upload_file([["E1", "Asha Rao", "asha@acme.io", "P1", "1200000"]])
    assert cli_main(["import", str(upload), "--mode", "replace", "--yes"]) == 0
    out = capsys.readouterr().out
    assert "(replace mode: existing data will be cleared)" in out
    assert "replaced=true" in out


def test_empty_upload_is_rejected(write_config, temp_workdir: Path, capsys):
    upload = temp_workdir / "data" / "empty.csv"
    upload.write_text("Emp ID,Name\n", encoding="utf-8")
    assert cli_main(["import", str(upload)]) == 1
    out = capsys.readouterr().out
    assert "ERROR import: EMPTY_FILE The uploaded file contains no data rows." in out
    assert "SUMMARY" not in out


def test_missing_upload_file(write_config, temp_workdir: Path, capsys):
    assert cli_main(["import", str(temp_workdir / "data" / "nope.csv")]) == 1
    assert "ERROR import:" in capsys.readouterr().out


def test_inspect_shows_mapping(write_config, temp_workdir: Path, upload_file, capsys):
    upload = upload_file([["E1", "Asha Rao", "asha@acme.io", "P1", "1200000"]])
    upload_extra = temp_workdir / "data" / "extra.csv"
    upload_extra.write_text("Emp ID,Hobby\nE1,Chess\n", encoding="utf-8")
    assert cli_main(["inspect", str(upload)]) == 0
    assert cli_main(["inspect", str(upload_extra)]) == 0
    out = capsys.readouterr().out
    assert "FILE: staff.csv format=csv" in out
    assert "COLUMN: 'Fixed CTC' -> annual_fixed" in out
    assert "COLUMN: 'Name' -> full_name" in out
    assert "COLUMN: 'Hobby' -> (extra)" in out


def test_band_update_mock_mode(write_config, temp_workdir: Path, capsys):
    code = cli_main(["band-update", "P1", "--min", "1000000", "--mid", "1200000", "--max", "1400000"])
    assert code == 0
    assert "band=P1 recomputed=0 failed=0" in capsys.readouterr().out


def test_band_update_rejects_unknown_band(write_config, temp_workdir: Path):
    with pytest.raises(SystemExit) as e:
        cli_main(["band-update", "Z9", "--min", "1", "--mid", "2", "--max", "3"])
    assert e.value.code == 2


def test_debug_flag(write_config, temp_workdir: Path, upload_file, capsys):
    upload = upload_file([["E1", "Asha Rao", "asha@acme.io", "P1", "1200000"]])
    assert cli_main(["--debug", "import", str(upload)]) == 0
    assert "DEBUG debug mode enabled" in capsys.readouterr().out


def test_unreachable_database_falls_back_to_mock(write_config, temp_workdir: Path, upload_file, monkeypatch, capsys):
    monkeypatch.delenv("DISABLE_DB_CONNECT")
    upload = upload_file([["E1", "Asha Rao", "asha@acme.io", "P1", "1200000"]])
    with patch("comp_ingest.cli.__main__.connect", side_effect=psycopg2.OperationalError("could not connect")):
        code = cli_main(["import", str(upload)])
    out = capsys.readouterr().out
    assert code == 0
    assert "DB connection failed -> fallback to mock mode: could not connect" in out


def test_env_file_overrides_environment(write_config, temp_workdir: Path, upload_file, monkeypatch):
    monkeypatch.setenv("DISABLE_DB_CONNECT", "0")
    (temp_workdir / ".env").write_text("DISABLE_DB_CONNECT=1\n", encoding="utf-8")
    upload = upload_file([["E1", "Asha Rao", "asha@acme.io", "P1", "1200000"]])
    with patch("comp_ingest.cli.__main__.connect") as mock_connect:
        assert cli_main(["import", str(upload)]) == 0
    mock_connect.assert_not_called()
