from __future__ import annotations

from collections.abc import Iterable
from types import MappingProxyType

from ..models.config_models import FieldKind, FieldSpec, ImportPolicy, TableConfig, TargetEntity

"""Table config registry.

Static, read-only description of every importable table: which target
fields exist (with the Arabic labels used by the mapping UI), which are
mandatory, their semantic kind and their default values. The transformer
consults it for every row; nothing here is computed at run time.
"""

__all__ = [
    "TABLE_CONFIGS",
    "field_kind",
    "get_config",
    "referenced_entities",
]


_CUSTOMERS = TableConfig(
    entity=TargetEntity.CUSTOMERS,
    name="العملاء",
    required_fields=frozenset({"full_name", "mobile_number"}),
    fields=(
        FieldSpec("id", "كود", FieldKind.IDENTIFIER),
        FieldSpec("sequence_number", "م العميل"),
        FieldSpec("full_name", "الاسم الكامل"),
        FieldSpec("mobile_number", "رقم الهاتف"),
        FieldSpec("mobile_number2", "رقم الهاتف 2"),
        FieldSpec("civil_id", "الرقم المدني"),
    ),
    policy=ImportPolicy.BEST_EFFORT,
)

_TRANSACTIONS = TableConfig(
    entity=TargetEntity.TRANSACTIONS,
    name="المعاملات",
    required_fields=frozenset(
        {"customer_id", "cost_price", "extra_price", "installment_amount", "start_date"}
    ),
    fields=(
        FieldSpec("sequence_number", "رقم البيع"),
        FieldSpec("customer_id", "رقم العميل", FieldKind.CROSS_REFERENCE, references=TargetEntity.CUSTOMERS),
        FieldSpec("cost_price", "سعر السلعة", FieldKind.MONEY),
        FieldSpec("extra_price", "السعر الاضافى", FieldKind.MONEY),
        FieldSpec("amount", "إجمالي السعر", FieldKind.MONEY),
        FieldSpec("installment_amount", "قيمة القسط", FieldKind.MONEY),
        FieldSpec("number_of_installments", "عدد الدفعات", FieldKind.COUNT),
        FieldSpec("start_date", "تاريخ البدء", FieldKind.CALENDAR_DATE),
        FieldSpec("notes", "ملاحظات"),
        FieldSpec("status", "الحالة", default_value="active", has_default=True),
        FieldSpec("has_legal_case", "قضية قانونية", default_value=False, has_default=True),
    ),
    policy=ImportPolicy.BEST_EFFORT,
)

_PAYMENTS = TableConfig(
    entity=TargetEntity.PAYMENTS,
    name="المدفوعات",
    required_fields=frozenset({"transaction_id", "customer_id", "amount", "payment_date"}),
    fields=(
        FieldSpec("transaction_id", "معرف المعاملة", FieldKind.CROSS_REFERENCE, references=TargetEntity.TRANSACTIONS),
        FieldSpec("customer_id", "معرف العميل", FieldKind.CROSS_REFERENCE, references=TargetEntity.CUSTOMERS),
        FieldSpec("amount", "المبلغ", FieldKind.MONEY),
        FieldSpec("payment_date", "تاريخ الدفع", FieldKind.CALENDAR_DATE),
        FieldSpec("notes", "ملاحظات"),
    ),
    # payments go through record_payment one row at a time
    policy=ImportPolicy.SEQUENTIAL,
)

TABLE_CONFIGS: MappingProxyType[TargetEntity, TableConfig] = MappingProxyType({
    TargetEntity.CUSTOMERS: _CUSTOMERS,
    TargetEntity.TRANSACTIONS: _TRANSACTIONS,
    TargetEntity.PAYMENTS: _PAYMENTS,
})


def get_config(entity: TargetEntity | str) -> TableConfig:
    """Return the static config of ``entity``.

    Raises:
        ValueError: if ``entity`` is not an importable table
    """
    try:
        return TABLE_CONFIGS[TargetEntity(entity)]
    except ValueError:
        raise ValueError(
            f"unknown table '{entity}', expected one of: {[e.value for e in TargetEntity]}"
        ) from None


def field_kind(config: TableConfig, target_field: str) -> FieldKind:
    """Semantic kind of ``target_field``; fields the table does not declare pass through."""
    spec = config.field_spec(target_field)
    return spec.kind if spec is not None else FieldKind.PASSTHROUGH


def referenced_entities(config: TableConfig, target_fields: Iterable[str]) -> list[TargetEntity]:
    """Entities whose reference maps are needed for the given mapped target fields."""
    entities: list[TargetEntity] = []
    for target in target_fields:
        spec = config.field_spec(target)
        if spec is None or spec.kind is not FieldKind.CROSS_REFERENCE or spec.references is None:
            continue
        if spec.references not in entities:
            entities.append(spec.references)
    return entities
