from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

import pandas as pd

from ..models.config_models import FieldKind, TableConfig, TargetEntity
from ..models.row_data import ErrorRow, ValidationResult, ValidRow, row_number_for
from .reference_resolver import ReferenceMap
from .table_configs import field_kind

if TYPE_CHECKING:
    from .progress import ProgressTracker

"""Row validator / transformer.

Turns one raw sheet row into either a ValidRow (target field -> coerced
value, derived fields included) or an ErrorRow. Processing of a row stops
at its first failing field, so a rejected row never yields a partial
ValidRow. ``transform_row`` is pure: the same inputs always give the same
result.

Coercion rules per FieldKind:

- IDENTIFIER: kept as string; customers also get it as ``sequence_number``
  so that later transaction/payment sheets can reference them
- CROSS_REFERENCE: looked up in the referenced entity's ReferenceMap
- MONEY: Decimal, finite and >= 0, never rounded
- COUNT: integral and, for transactions, >= ``min_installments``
- CALENDAR_DATE: spreadsheet serial (days since 1899-12-30) or calendar
  string, stored as YYYY-MM-DD (UTC, time of day dropped)
- PASSTHROUGH: copied verbatim
"""

__all__ = [
    "EXCEL_EPOCH_OFFSET_DAYS",
    "MIN_INSTALLMENTS",
    "RowValidationError",
    "parse_calendar_date",
    "parse_count",
    "parse_money",
    "transform_row",
    "validate_rows",
]

# 0 を許容するか 1 以上とするかは設定 (min_installments) で上書き可能
MIN_INSTALLMENTS = 1

# days between the spreadsheet epoch (1899-12-30) and 1970-01-01
EXCEL_EPOCH_OFFSET_DAYS = 25569
MS_PER_DAY = 86400 * 1000
_UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
# pandas resolves these against the current clock; rejected as invalid dates
_RELATIVE_DATE_WORDS = frozenset({"now", "today", "yesterday", "tomorrow"})

_NOT_FOUND_MESSAGES = {
    TargetEntity.CUSTOMERS: "لم يتم العثور على عميل بالرقم '{value}'.",
    TargetEntity.TRANSACTIONS: "لم يتم العثور على معاملة بالرقم '{value}'.",
}


class RowValidationError(Exception):
    """A mapped value failed coercion, presence or reference lookup."""


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _parse_decimal(text: str) -> Decimal | None:
    try:
        number = Decimal(text)
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite():
        return None
    return number


def parse_money(value: Any) -> Decimal:
    text = str(value).strip()
    number = _parse_decimal(text)
    if number is None:
        raise RowValidationError(f"القيمة '{value}' ليست رقماً صالحاً.")
    if number < 0:
        raise RowValidationError(f"القيمة '{value}' لا يمكن أن تكون سالبة.")
    return number


def parse_count(value: Any, minimum: int | None = None) -> int:
    text = str(value).strip()
    number = _parse_decimal(text)
    if number is None or number != number.to_integral_value():
        raise RowValidationError(f"القيمة '{value}' ليست رقماً صحيحاً.")
    count = int(number)
    if minimum is not None and count < minimum:
        raise RowValidationError(f"عدد الدفعات '{value}' يجب أن يكون {minimum} على الأقل.")
    return count


def parse_calendar_date(value: Any) -> str:
    """Return ``value`` as an ISO calendar date (YYYY-MM-DD)."""
    text = str(value).strip()
    if text.lower() in _RELATIVE_DATE_WORDS:
        raise RowValidationError(f"التاريخ '{value}' غير صالح.")
    serial = _parse_decimal(text)
    try:
        if serial is not None:
            ms = int(((serial - EXCEL_EPOCH_OFFSET_DAYS) * MS_PER_DAY).to_integral_value(rounding=ROUND_HALF_UP))
            return (_UNIX_EPOCH + timedelta(milliseconds=ms)).date().isoformat()
        ts = pd.to_datetime(text)
    except (ValueError, TypeError, OverflowError):
        raise RowValidationError(f"التاريخ '{value}' غير صالح.") from None
    if pd.isna(ts):
        raise RowValidationError(f"التاريخ '{value}' غير صالح.")
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC")
    return ts.date().isoformat()


def _resolve_reference(
    value: Any, entity: TargetEntity | None, reference_maps: Mapping[TargetEntity, ReferenceMap]
) -> Any:
    ref_map = reference_maps.get(entity) if entity is not None else None
    resolved = ref_map.resolve(value) if ref_map is not None else None
    if resolved is None:
        template = _NOT_FOUND_MESSAGES.get(entity, "لم يتم العثور على سجل بالرقم '{value}'.")
        raise RowValidationError(template.format(value=value))
    return resolved


def _apply_field(
    values: dict[str, Any],
    target: str,
    value: Any,
    config: TableConfig,
    reference_maps: Mapping[TargetEntity, ReferenceMap],
    min_installments: int,
) -> None:
    kind = field_kind(config, target)
    if kind is FieldKind.IDENTIFIER:
        text = str(value).strip()
        values[target] = text
        if config.entity is TargetEntity.CUSTOMERS:
            values["sequence_number"] = text
    elif kind is FieldKind.CROSS_REFERENCE:
        spec = config.field_spec(target)
        values[target] = _resolve_reference(value, spec.references if spec else None, reference_maps)
    elif kind is FieldKind.MONEY:
        values[target] = parse_money(value)
    elif kind is FieldKind.COUNT:
        minimum = min_installments if config.entity is TargetEntity.TRANSACTIONS else None
        values[target] = parse_count(value, minimum)
    elif kind is FieldKind.CALENDAR_DATE:
        values[target] = parse_calendar_date(value)
    else:
        values[target] = value


def _apply_derived(values: dict[str, Any], config: TableConfig) -> None:
    for name, default in config.defaults.items():
        values.setdefault(name, default)
    if config.entity is TargetEntity.TRANSACTIONS:
        amount = values.get("cost_price", Decimal(0)) + values.get("extra_price", Decimal(0))
        values["amount"] = amount
        values["remaining_balance"] = amount
        values["status"] = "active"


def transform_row(
    raw_row: Mapping[str, Any],
    config: TableConfig,
    mappings: Mapping[str, str],
    reference_maps: Mapping[TargetEntity, ReferenceMap],
    row_index: int,
    min_installments: int = MIN_INSTALLMENTS,
) -> ValidRow | ErrorRow:
    """Validate and coerce one sheet row.

    Parameters
    ----------
    raw_row: sheet row (column header -> cell text)
    config: table config of the import target
    mappings: source column -> target field, in user order
    reference_maps: maps of the entities referenced by the mapped fields
    row_index: 0-based data row index (reported row number is index + 2)
    min_installments: lower bound for transaction installment counts
    """
    row_number = row_number_for(row_index)
    mapped_targets = set(mappings.values())
    for spec in config.fields:
        if spec.value in config.required_fields and spec.value not in mapped_targets:
            return ErrorRow(row_number, f"الحقل المطلوب '{spec.label}' غير مربوط بأي عمود في الملف.")

    values: dict[str, Any] = {}
    for source, target in mappings.items():
        value = raw_row.get(source)
        if _is_blank(value):
            if target in config.required_fields:
                return ErrorRow(row_number, f"الحقل المطلوب '{source}' فارغ.")
            continue
        try:
            _apply_field(values, target, value, config, reference_maps, min_installments)
        except RowValidationError as e:
            return ErrorRow(row_number, str(e))

    _apply_derived(values, config)
    return ValidRow(row_number, values)


def validate_rows(
    rows: Sequence[Mapping[str, Any]],
    config: TableConfig,
    mappings: Mapping[str, str],
    reference_maps: Mapping[TargetEntity, ReferenceMap],
    min_installments: int = MIN_INSTALLMENTS,
    progress: ProgressTracker | None = None,
) -> ValidationResult:
    """Run ``transform_row`` over every row; row errors never stop the pass."""
    result = ValidationResult()
    for index, raw_row in enumerate(rows):
        result.add(transform_row(raw_row, config, mappings, reference_maps, index, min_installments))
        if progress is not None:
            progress.advance()
    return result
