from __future__ import annotations

import uuid
from collections.abc import Callable, Sequence
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

from .repository import RemoteProcedureError, Repository, RepositoryError

"""In-memory Repository used by tests and dry runs.

Mirrors the behaviour the pipeline relies on from the real store: ids and
``created_at`` are assigned on insert, and ``record_payment`` applies the
same balance rules as the server-side procedure.
"""

__all__ = [
    "BALANCE_EXCEEDED_MESSAGE",
    "InMemoryRepository",
]

BALANCE_EXCEEDED_MESSAGE = "Payment amount exceeds remaining balance"
TRANSACTION_NOT_FOUND_MESSAGE = "Transaction not found"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InMemoryRepository(Repository):
    def __init__(
        self,
        tables: dict[str, list[dict[str, Any]]] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {
            "customers": [],
            "transactions": [],
            "payments": [],
        }
        self._clock = clock
        for table, rows in (tables or {}).items():
            self.tables.setdefault(table, [])
            for row in rows:
                self.tables[table].append(self._stamp(row))

    def _stamp(self, row: dict[str, Any]) -> dict[str, Any]:
        stored = dict(row)
        stored.setdefault("id", str(uuid.uuid4()))
        stored.setdefault("created_at", self._clock())
        return stored

    def _table(self, table: str) -> list[dict[str, Any]]:
        try:
            return self.tables[table]
        except KeyError:
            raise RepositoryError(f'relation "{table}" does not exist') from None

    def fetch_sequence_numbers(self, table: str) -> list[tuple[Any, Any]]:
        return [(row["id"], row.get("sequence_number")) for row in self._table(table)]

    def sample_row(self, table: str) -> dict[str, Any] | None:
        rows = self._table(table)
        return dict(rows[0]) if rows else None

    def bulk_insert(self, table: str, rows: Sequence[dict[str, Any]]) -> int:
        target = self._table(table)
        stamped = [self._stamp(row) for row in rows]
        target.extend(stamped)
        return len(stamped)

    def record_payment(self, transaction_id: Any, amount: Decimal, payment_date: date | str) -> None:
        transaction = next(
            (t for t in self._table("transactions") if t["id"] == transaction_id), None
        )
        if transaction is None:
            raise RemoteProcedureError(TRANSACTION_NOT_FOUND_MESSAGE)
        balance_before = Decimal(str(transaction.get("remaining_balance") or 0))
        if amount > balance_before:
            raise RemoteProcedureError(BALANCE_EXCEEDED_MESSAGE)
        balance_after = balance_before - amount
        transaction["remaining_balance"] = balance_after
        if balance_after == 0:
            transaction["status"] = "completed"
        self._table("payments").append(self._stamp({
            "transaction_id": transaction_id,
            "customer_id": transaction.get("customer_id"),
            "amount": amount,
            "payment_date": payment_date,
            "balance_before": balance_before,
            "balance_after": balance_after,
        }))

    def delete_rows(self, table: str, created_since: datetime | None = None) -> None:
        rows = self._table(table)
        if created_since is None:
            rows.clear()
        else:
            rows[:] = [r for r in rows if r["created_at"] < created_since]
