from __future__ import annotations

import json

import pytest

from installment_import.db.memory import InMemoryRepository
from installment_import.db.repository import RepositoryError
from installment_import.excel.reader import ParseError
from installment_import.logging.error_log import ErrorLogBuffer
from installment_import.models.config_models import ImportConfig, ImportPolicy, TargetEntity
from installment_import.models.row_data import ErrorRow
from installment_import.services.committer import DatabaseError
from installment_import.services.importer import build_outcome_message, import_data, resolve_policy
from installment_import.services.reference_resolver import ResolutionSourceUnavailable
from installment_import.services.table_configs import get_config

CUSTOMER_MAP = {"Name": "full_name", "Phone": "mobile_number"}


def _customers_sheet(make_workbook, *rows):
    return make_workbook({"Sheet1": [["Name", "Phone"], *rows]})


def _config(mappings=CUSTOMER_MAP, entity=TargetEntity.CUSTOMERS, sheet="Sheet1"):
    return ImportConfig(target_entity=entity, sheet_name=sheet, mappings=mappings)


def test_resolve_policy():
    assert resolve_policy(get_config("customers")) is ImportPolicy.BEST_EFFORT
    assert resolve_policy(get_config("customers"), ImportPolicy.ALL_OR_NOTHING) is ImportPolicy.ALL_OR_NOTHING
    assert resolve_policy(get_config("payments"), ImportPolicy.SEQUENTIAL) is ImportPolicy.SEQUENTIAL
    with pytest.raises(ValueError):
        resolve_policy(get_config("payments"), ImportPolicy.ALL_OR_NOTHING)
    with pytest.raises(ValueError):
        resolve_policy(get_config("transactions"), ImportPolicy.SEQUENTIAL)


@pytest.mark.parametrize(
    "imported, errors, valid, policy, expected",
    [
        (3, 0, 3, ImportPolicy.BEST_EFFORT, "تم استيراد 3 سجلات بنجاح."),
        (2, 1, 2, ImportPolicy.BEST_EFFORT, "تم استيراد 2 سجلات بنجاح، وتم تخطي 1 صفوف بسبب أخطاء."),
        (0, 0, 0, ImportPolicy.BEST_EFFORT, "لا توجد بيانات صالحة للاستيراد."),
        (0, 2, 0, ImportPolicy.BEST_EFFORT, "لا توجد بيانات صالحة للاستيراد. تم تخطي 2 صفوف بسبب أخطاء."),
        (0, 1, 4, ImportPolicy.ALL_OR_NOTHING, "فشل الاستيراد. تم العثور على 1 أخطاء."),
        (0, 2, 2, ImportPolicy.SEQUENTIAL, "لم يتم استيراد أي سجل. تم تخطي 2 صفوف بسبب أخطاء."),
    ],
)
def test_build_outcome_message(imported, errors, valid, policy, expected):
    error_rows = [ErrorRow(i + 2, "x") for i in range(errors)]
    assert build_outcome_message(imported, error_rows, valid, policy) == expected


def test_import_customers(make_workbook):
    repo = InMemoryRepository()
    data = _customers_sheet(make_workbook, ["Ali", 5550001], ["Mona", 5550002])
    outcome = import_data(data, _config(), repo)
    assert outcome.imported_count == 2
    assert outcome.errors == []
    assert outcome.message == "تم استيراد 2 سجلات بنجاح."
    assert [r["mobile_number"] for r in repo.tables["customers"]] == ["5550001", "5550002"]


def test_all_or_nothing_commits_nothing(make_workbook):
    repo = InMemoryRepository()
    data = _customers_sheet(make_workbook, ["Ali", 5550001], ["Mona", None])
    outcome = import_data(data, _config(), repo, policy=ImportPolicy.ALL_OR_NOTHING)
    assert outcome.imported_count == 0
    assert outcome.errors == [ErrorRow(3, "الحقل المطلوب 'Phone' فارغ.")]
    assert outcome.message == "فشل الاستيراد. تم العثور على 1 أخطاء."
    assert repo.tables["customers"] == []


def test_no_valid_rows_skips_commit(make_workbook):
    class _NoInsert(InMemoryRepository):
        def bulk_insert(self, table, rows):
            raise AssertionError("bulk_insert must not be called")

    data = _customers_sheet(make_workbook, [None, 1], [None, 2])
    outcome = import_data(data, _config(), _NoInsert())
    assert outcome.imported_count == 0
    assert outcome.skipped_count == 2
    assert outcome.message.startswith("لا توجد بيانات صالحة للاستيراد.")


def test_row_errors_go_to_error_log(make_workbook, tmp_path):
    log = ErrorLogBuffer(tmp_path)
    data = _customers_sheet(make_workbook, ["Ali", 5550001], ["Mona", None])
    import_data(data, _config(), InMemoryRepository(), error_log=log, source_name="clients.xlsx")
    path = log.flush()
    (record,) = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert record["file"] == "clients.xlsx"
    assert record["table"] == "customers"
    assert record["row"] == 3
    assert record["error_type"] == "ROW_VALIDATION_ERROR"


def test_missing_sheet_propagates(make_workbook, tmp_path):
    log = ErrorLogBuffer(tmp_path)
    data = _customers_sheet(make_workbook, ["Ali", 1])
    with pytest.raises(ParseError):
        import_data(data, _config(sheet="Other"), InMemoryRepository(), error_log=log)
    assert len(log) == 1


def test_reference_fetch_failure_propagates(make_workbook, tmp_path):
    class _Down(InMemoryRepository):
        def fetch_sequence_numbers(self, table):
            raise RepositoryError("could not connect")

    data = make_workbook({"Sheet1": [["Cust", "Cost"], [7, 10]]})
    config = _config({"Cust": "customer_id", "Cost": "cost_price"}, TargetEntity.TRANSACTIONS)
    log = ErrorLogBuffer(tmp_path)
    with pytest.raises(ResolutionSourceUnavailable):
        import_data(data, config, _Down(), error_log=log)
    path = log.flush()
    record = json.loads(path.read_text(encoding="utf-8"))
    assert record["row"] == -1
    assert record["error_type"] == "RESOLUTION_SOURCE_UNAVAILABLE"


def test_bulk_insert_failure_propagates(make_workbook):
    class _Broken(InMemoryRepository):
        def bulk_insert(self, table, rows):
            raise RepositoryError("deadlock detected")

    data = _customers_sheet(make_workbook, ["Ali", 5550001])
    with pytest.raises(DatabaseError):
        import_data(data, _config(), _Broken())


def test_unsupported_policy_rejected_before_reading():
    with pytest.raises(ValueError):
        import_data(b"", _config(entity=TargetEntity.PAYMENTS), InMemoryRepository(),
                    policy=ImportPolicy.BEST_EFFORT)
