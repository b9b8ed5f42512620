from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any

"""Persistence boundary of the import pipeline.

The pipeline only talks to a Repository; PostgresRepository is the
production implementation and InMemoryRepository backs tests. Balance
bookkeeping for payments is server-side logic, so payments are never
inserted directly: they go through ``record_payment``.
"""

__all__ = [
    "RemoteProcedureError",
    "Repository",
    "RepositoryError",
]


class RepositoryError(Exception):
    """A store call failed (connection, constraint, permission...)."""


class RemoteProcedureError(RepositoryError):
    """The record_payment procedure rejected a payment.

    The message is the store's own text and is shown to the user verbatim.
    """


class Repository(ABC):
    """Operations the import pipeline needs from the remote store."""

    @abstractmethod
    def fetch_sequence_numbers(self, table: str) -> list[tuple[Any, Any]]:
        """Return every ``(id, sequence_number)`` pair of ``table``."""

    @abstractmethod
    def sample_row(self, table: str) -> dict[str, Any] | None:
        """Return one row of ``table`` (schema introspection) or None when empty."""

    @abstractmethod
    def bulk_insert(self, table: str, rows: Sequence[dict[str, Any]]) -> int:
        """Insert ``rows`` in one call and return the inserted row count.

        Implementations raise RepositoryError on failure; callers must not
        assume that nothing was written.
        """

    @abstractmethod
    def record_payment(self, transaction_id: Any, amount: Decimal, payment_date: date | str) -> None:
        """Record one payment and update the transaction's remaining balance."""

    @abstractmethod
    def delete_rows(self, table: str, created_since: datetime | None = None) -> None:
        """Delete all rows of ``table`` or those with ``created_at >= created_since``."""
