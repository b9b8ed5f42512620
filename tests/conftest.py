# Shared pytest fixtures
from __future__ import annotations

import io
import tempfile
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import pandas as pd
import pytest

from installment_import.db.memory import InMemoryRepository
from installment_import.logging.init import reset_logging

FIXED_NOW = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)


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
def _clean_env(monkeypatch):
    # 接続情報の環境変数がテストに漏れないようにする
    for name in ("DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE"):
        monkeypatch.delenv(name, raising=False)
    reset_logging()
    yield
    reset_logging()


def build_workbook(sheets: dict[str, list[list[object]]]) -> bytes:
    """Workbook bytes; the first list of every sheet is the header row."""
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        for sheet, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet, header=False, index=False)
    return buf.getvalue()


@pytest.fixture()
def make_workbook() -> Callable[[dict[str, list[list[object]]]], bytes]:
    return build_workbook


@pytest.fixture()
def sample_config_yaml() -> str:
    return """database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
min_installments: 1
preview_rows: 3
page_size: 500
policies:
  transactions: all_or_nothing
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def repository() -> InMemoryRepository:
    """Store holding two customers (sequence numbers 7 and "C-2")."""
    return InMemoryRepository(
        tables={
            "customers": [
                {"id": "cust-7", "sequence_number": "7", "full_name": "Ali", "mobile_number": "5550001"},
                {"id": "cust-c2", "sequence_number": "C-2", "full_name": "Mona", "mobile_number": "5550002"},
            ],
        },
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture()
def payments_repository() -> InMemoryRepository:
    """Store with one customer and two transactions (balances 100 and 50)."""
    return InMemoryRepository(
        tables={
            "customers": [
                {"id": "cust-7", "sequence_number": "7", "full_name": "Ali", "mobile_number": "5550001"},
            ],
            "transactions": [
                {"id": "tx-1", "sequence_number": "1", "customer_id": "cust-7",
                 "remaining_balance": "100", "status": "active"},
                {"id": "tx-2", "sequence_number": "2", "customer_id": "cust-7",
                 "remaining_balance": "50", "status": "active"},
            ],
        },
        clock=lambda: FIXED_NOW,
    )
