from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""Config dataclasses for the installment import engine.

This module holds the static descriptors used by the import pipeline:
target entities, field kinds, per-table configuration and the per-run
ImportConfig supplied by the caller. The YAML-backed application settings
live in installment_import.config.loader.
"""


class TargetEntity(str, Enum):
    """Tables that can be targeted by an import run."""
    CUSTOMERS = "customers"
    TRANSACTIONS = "transactions"
    PAYMENTS = "payments"


class FieldKind(Enum):
    """Semantic type of a target field, dispatched on by the row transformer.

    - IDENTIFIER: legacy id kept as a string (customers also reuse it as sequence number)
    - CROSS_REFERENCE: sequence number resolved to another entity's internal id
    - MONEY: non-negative decimal amount, never rounded
    - COUNT: integral count (number of installments)
    - CALENDAR_DATE: spreadsheet serial or calendar string, stored as YYYY-MM-DD
    - PASSTHROUGH: copied verbatim
    """
    IDENTIFIER = "identifier"
    CROSS_REFERENCE = "cross_reference"
    MONEY = "money"
    COUNT = "count"
    CALENDAR_DATE = "calendar_date"
    PASSTHROUGH = "passthrough"


class ImportPolicy(str, Enum):
    """How row errors interact with the commit of the remaining rows.

    - BEST_EFFORT: valid rows are committed, invalid rows are reported
    - ALL_OR_NOTHING: any row error prevents every row from being committed
    - SEQUENTIAL: rows are committed one at a time; a failure never undoes earlier rows
    """
    BEST_EFFORT = "best_effort"
    ALL_OR_NOTHING = "all_or_nothing"
    SEQUENTIAL = "sequential"


@dataclass(frozen=True)
class FieldSpec:
    """One importable field of a target table."""
    value: str  # target column name
    label: str  # Arabic label shown in the mapping UI
    kind: FieldKind = FieldKind.PASSTHROUGH
    references: TargetEntity | None = None  # only for CROSS_REFERENCE
    default_value: Any = None
    has_default: bool = False


@dataclass(frozen=True)
class TableConfig:
    """Static per-entity descriptor (read-only, defined at import time)."""
    entity: TargetEntity
    name: str  # Arabic display name
    required_fields: frozenset[str]
    fields: tuple[FieldSpec, ...]
    policy: ImportPolicy = ImportPolicy.BEST_EFFORT

    def field_spec(self, value: str) -> FieldSpec | None:
        for spec in self.fields:
            if spec.value == value:
                return spec
        return None

    @property
    def field_names(self) -> list[str]:
        return [spec.value for spec in self.fields]

    @property
    def defaults(self) -> dict[str, Any]:
        return {spec.value: spec.default_value for spec in self.fields if spec.has_default}


@dataclass(frozen=True)
class ImportConfig:
    """Caller-supplied description of one import run.

    ``mappings`` is ordered (source column -> target field) and need not be
    total: unmapped sheet columns are ignored.
    """
    target_entity: TargetEntity
    sheet_name: str
    mappings: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None
