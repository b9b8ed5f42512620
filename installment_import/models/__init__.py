"""Domain models for the installment import engine.

This package contains the dataclasses shared by the workbook reader, the
row transformer, the committer and the CLI.
"""

from .config_models import (
    DatabaseConfig,
    FieldKind,
    FieldSpec,
    ImportConfig,
    ImportPolicy,
    TableConfig,
    TargetEntity,
)
from .error_record import ErrorRecord
from .import_outcome import CommitResult, ImportOutcome, PurgeResult
from .row_data import ErrorRow, ValidationResult, ValidRow
from .workbook import WorkbookPreview

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "FieldKind",
    "FieldSpec",
    "ImportConfig",
    "ImportPolicy",
    "TableConfig",
    "TargetEntity",
    # Processing models
    "ErrorRow",
    "ValidRow",
    "ValidationResult",
    # Results
    "CommitResult",
    "ErrorRecord",
    "ImportOutcome",
    "PurgeResult",
    "WorkbookPreview",
]
