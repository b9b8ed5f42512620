from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

from ..db.repository import Repository, RepositoryError
from ..models.config_models import TargetEntity
from ..models.import_outcome import CommitResult
from ..models.row_data import ErrorRow, ValidRow

if TYPE_CHECKING:
    from .progress import ProgressTracker

"""Import committer.

Customers and transactions are written with one bulk insert: either the
call succeeds and every row counts, or it fails with DatabaseError and no
row counts (the store may still hold part of the batch, so the caller must
verify before retrying).

Payments are recorded one row at a time through the store's
``record_payment`` procedure, which owns the remaining-balance logic. A
failing payment is recorded as a RowCommitError and the next row is still
attempted; nothing is retried.
"""

__all__ = [
    "DatabaseError",
    "RowCommitError",
    "balance_exceeded",
    "commit",
    "uncarried_payment_fields",
]

logger = logging.getLogger(__name__)

BALANCE_EXCEEDED_PREFIX = "المبلغ المدفوع أكبر من المبلغ المتبقي"
PAYMENT_FAILED_PREFIX = "فشل تسجيل الدفعة"

_BALANCE_MARKERS = ("exceed", "remaining balance", "المتبقي")

# record_payment の引数になるフィールド (customer_id は参照チェックのみ)
PAYMENT_CARRIED_FIELDS = frozenset({"transaction_id", "amount", "payment_date"})
_PAYMENT_CHECK_ONLY_FIELDS = frozenset({"customer_id"})


class DatabaseError(Exception):
    """The bulk insert call failed; zero rows are reported as imported."""


class RowCommitError(Exception):
    """One payment's record_payment call failed."""

    def __init__(self, row_number: int, message: str) -> None:
        super().__init__(message)
        self.row_number = row_number
        self.message = message

    def to_error_row(self) -> ErrorRow:
        return ErrorRow(self.row_number, self.message)


def balance_exceeded(server_message: str) -> bool:
    lowered = server_message.lower()
    return any(marker in lowered for marker in _BALANCE_MARKERS)


def uncarried_payment_fields(target_fields: Iterable[str]) -> list[str]:
    """Mapped payment fields that validate but are not passed to record_payment."""
    skipped = PAYMENT_CARRIED_FIELDS | _PAYMENT_CHECK_ONLY_FIELDS
    return sorted({t for t in target_fields if t not in skipped})


def _payment_error(row: ValidRow, server_message: str) -> RowCommitError:
    prefix = BALANCE_EXCEEDED_PREFIX if balance_exceeded(server_message) else PAYMENT_FAILED_PREFIX
    return RowCommitError(row.row_number, f"{prefix}: {server_message}")


def _commit_payments(
    repository: Repository, rows: Sequence[ValidRow], progress: ProgressTracker | None
) -> CommitResult:
    inserted = 0
    failures: list[ErrorRow] = []
    for row in rows:
        values = row.values
        try:
            repository.record_payment(values["transaction_id"], values["amount"], values["payment_date"])
            inserted += 1
        except RepositoryError as e:
            err = _payment_error(row, str(e))
            logger.warning("payment row=%d rejected: %s", row.row_number, e)
            failures.append(err.to_error_row())
        if progress is not None:
            progress.advance()
            progress.set_postfix(ok=inserted, failed=len(failures))
    return CommitResult(inserted_count=inserted, row_failures=failures)


def commit(
    repository: Repository,
    valid_rows: Sequence[ValidRow],
    entity: TargetEntity,
    progress: ProgressTracker | None = None,
) -> CommitResult:
    """Write ``valid_rows`` to the store.

    Raises:
        DatabaseError: if the bulk insert (customers / transactions) fails
    """
    if not valid_rows:
        return CommitResult(inserted_count=0)
    if entity is TargetEntity.PAYMENTS:
        return _commit_payments(repository, valid_rows, progress)

    try:
        inserted = repository.bulk_insert(entity.value, [row.values for row in valid_rows])
    except RepositoryError as e:
        raise DatabaseError(f"خطأ في قاعدة البيانات: {e}") from e
    if progress is not None:
        progress.advance(len(valid_rows))
    return CommitResult(inserted_count=inserted)
