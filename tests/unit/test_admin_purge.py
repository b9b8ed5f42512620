from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from installment_import.db.memory import InMemoryRepository
from installment_import.db.repository import RepositoryError
from installment_import.models.config_models import TargetEntity
from installment_import.services.admin import PurgeError, get_table_fields, purge

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)


@pytest.fixture()
def aged_repository() -> InMemoryRepository:
    return InMemoryRepository(tables={
        "customers": [
            {"full_name": "three days", "created_at": NOW - timedelta(days=3)},
            {"full_name": "five hours", "created_at": NOW - timedelta(hours=5)},
            {"full_name": "one hour", "created_at": NOW - timedelta(hours=1)},
            {"full_name": "ten minutes", "created_at": NOW - timedelta(minutes=10)},
        ],
        "transactions": [{"sequence_number": "1", "created_at": NOW}],
    })


def test_purge_window_keeps_older_rows(aged_repository):
    result = purge(aged_repository, "customers", older_than_hours=24, now=NOW)
    assert [r["full_name"] for r in aged_repository.tables["customers"]] == ["three days"]
    assert result.message == "تم حذف البيانات المستوردة في آخر 24 ساعة من العملاء"


def test_purge_narrow_window(aged_repository):
    purge(aged_repository, TargetEntity.CUSTOMERS, older_than_hours=1, now=NOW)
    assert [r["full_name"] for r in aged_repository.tables["customers"]] == ["three days", "five hours"]


def test_purge_window_start_is_inclusive(aged_repository):
    purge(aged_repository, "customers", older_than_hours=5, now=NOW)
    # created exactly at now - 5h is inside the window
    assert [r["full_name"] for r in aged_repository.tables["customers"]] == ["three days"]


def test_purge_everything(aged_repository):
    result = purge(aged_repository, "customers")
    assert aged_repository.tables["customers"] == []
    # other tables are untouched
    assert len(aged_repository.tables["transactions"]) == 1
    assert result.message == "تم حذف جميع البيانات من العملاء"


@pytest.mark.parametrize("hours", [0, -3])
def test_purge_rejects_non_positive_window(aged_repository, hours):
    with pytest.raises(ValueError):
        purge(aged_repository, "customers", older_than_hours=hours, now=NOW)
    assert len(aged_repository.tables["customers"]) == 4


def test_purge_unknown_table(aged_repository):
    with pytest.raises(ValueError):
        purge(aged_repository, "orders")


class _ReadOnlyRepository(InMemoryRepository):
    def delete_rows(self, table, created_since=None):
        raise RepositoryError("permission denied for table customers")


def test_purge_store_failure():
    with pytest.raises(PurgeError) as ei:
        purge(_ReadOnlyRepository(), "customers")
    assert "permission denied" in str(ei.value)


def test_get_table_fields(repository):
    fields = get_table_fields(repository, "customers")
    assert "full_name" in fields
    assert "sequence_number" in fields
    assert get_table_fields(repository, "payments") == []
