from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from installment_import.models.config_models import ImportConfig, TargetEntity
from installment_import.services.importer import import_data

"""Transactions import against a store holding customers 7 and C-2."""

MAPPINGS = {
    "رقم العميل": "customer_id",
    "سعر السلعة": "cost_price",
    "السعر الاضافى": "extra_price",
    "قيمة القسط": "installment_amount",
    "عدد الدفعات": "number_of_installments",
    "تاريخ البدء": "start_date",
}


def test_two_valid_one_unknown_customer(repository, make_workbook):
    data = make_workbook({
        "المعاملات": [
            list(MAPPINGS),
            [7, 1000, 200, 100, 12, datetime(2024, 1, 1)],
            [42, 500, 50, 50, 11, datetime(2024, 1, 1)],
            ["C-2", 300, 0, 30, 10, 45292],
        ]
    })
    config = ImportConfig(target_entity=TargetEntity.TRANSACTIONS, sheet_name="المعاملات", mappings=MAPPINGS)

    outcome = import_data(data, config, repository)

    assert outcome.imported_count == 2
    assert len(outcome.errors) == 1
    assert outcome.errors[0].row_number == 3
    assert "42" in outcome.errors[0].message
    assert "2" in outcome.message and "1" in outcome.message

    stored = repository.tables["transactions"]
    assert [t["customer_id"] for t in stored] == ["cust-7", "cust-c2"]
    first = stored[0]
    assert first["amount"] == Decimal("1200")
    assert first["remaining_balance"] == Decimal("1200")
    assert first["status"] == "active"
    assert first["has_legal_case"] is False
    assert first["start_date"] == "2024-01-01"
    assert stored[1]["start_date"] == "2024-01-01"


def test_running_twice_duplicates_rows(repository, make_workbook):
    data = make_workbook({"S": [list(MAPPINGS), [7, 10, 1, 1, 11, "2024-05-01"]]})
    config = ImportConfig(target_entity=TargetEntity.TRANSACTIONS, sheet_name="S", mappings=MAPPINGS)
    import_data(data, config, repository)
    import_data(data, config, repository)
    assert len(repository.tables["transactions"]) == 2


def test_zero_installments_allowed_when_configured(repository, make_workbook):
    data = make_workbook({"S": [list(MAPPINGS), [7, 10, 1, 1, 0, "2024-05-01"]]})
    config = ImportConfig(target_entity=TargetEntity.TRANSACTIONS, sheet_name="S", mappings=MAPPINGS)
    assert import_data(data, config, repository).imported_count == 0
    assert import_data(data, config, repository, min_installments=0).imported_count == 1
