from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, TypeVar

import psycopg2

from ..models.config_models import DatabaseConfig
from .batch_insert import BatchInsertError, BatchMetrics, batch_insert, quote_ident
from .repository import RemoteProcedureError, Repository, RepositoryError

"""PostgreSQL implementation of the Repository boundary.

Every public call runs in its own transaction: committed on success, rolled
back on failure. Payments are recorded through the ``record_payment``
stored procedure, which owns the remaining-balance bookkeeping; each
payment is committed on its own so a later failure never undoes it.
"""

__all__ = [
    "PostgresRepository",
    "open_repository",
    "resolve_dsn",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")

RECORD_PAYMENT_SQL = (
    "SELECT record_payment(p_transaction_id := %s, p_amount := %s, p_payment_date := %s)"
)


def _pg_message(e: Exception) -> str:
    diag = getattr(e, "diag", None)
    primary = getattr(diag, "message_primary", None) if diag is not None else None
    return (primary or str(e)).strip()


class PostgresRepository(Repository):
    def __init__(self, conn: Any, page_size: int = 1000) -> None:
        self._conn = conn
        self._page_size = page_size

    def _run(self, fn: Callable[[Any], T]) -> T:
        try:
            with self._conn.cursor() as cur:
                result = fn(cur)
            self._conn.commit()
            return result
        except (psycopg2.Error, BatchInsertError) as e:
            try:
                self._conn.rollback()
            except psycopg2.Error:
                logger.warning("rollback failed after store error", exc_info=True)
            raise RepositoryError(_pg_message(e)) from e

    def fetch_sequence_numbers(self, table: str) -> list[tuple[Any, Any]]:
        def _fetch(cur: Any) -> list[tuple[Any, Any]]:
            cur.execute(f"SELECT id, sequence_number FROM {quote_ident(table)}")
            return [(r[0], r[1]) for r in cur.fetchall()]

        return self._run(_fetch)

    def sample_row(self, table: str) -> dict[str, Any] | None:
        def _sample(cur: Any) -> dict[str, Any] | None:
            cur.execute(f"SELECT * FROM {quote_ident(table)} LIMIT 1")
            row = cur.fetchone()
            if row is None:
                return None
            names = [d[0] for d in cur.description]
            return dict(zip(names, row, strict=False))

        return self._run(_sample)

    def bulk_insert(self, table: str, rows: Sequence[dict[str, Any]]) -> int:
        def _log_metrics(metrics: BatchMetrics) -> None:
            logger.debug(
                "table=%s batch_size=%d elapsed_sec=%.3f", table, metrics.batch_size, metrics.elapsed_seconds
            )

        def _insert(cur: Any) -> int:
            result = batch_insert(
                cur, table, rows, page_size=self._page_size, metrics_callback=_log_metrics
            )
            return result.inserted_rows

        return self._run(_insert)

    def record_payment(self, transaction_id: Any, amount: Decimal, payment_date: date | str) -> None:
        try:
            with self._conn.cursor() as cur:
                cur.execute(RECORD_PAYMENT_SQL, (transaction_id, amount, payment_date))
            self._conn.commit()
        except psycopg2.Error as e:
            try:
                self._conn.rollback()
            except psycopg2.Error:
                logger.warning("rollback failed after record_payment error", exc_info=True)
            raise RemoteProcedureError(_pg_message(e)) from e

    def delete_rows(self, table: str, created_since: datetime | None = None) -> None:
        def _delete(cur: Any) -> None:
            if created_since is None:
                cur.execute(f"DELETE FROM {quote_ident(table)}")
            else:
                cur.execute(
                    f"DELETE FROM {quote_ident(table)} WHERE created_at >= %s", (created_since,)
                )
            logger.debug("table=%s deleted_rows=%s", table, cur.rowcount)

        self._run(_delete)


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Build the connection string.

    Priority: DATABASE_URL / PGDSN, then the config ``dsn``, then individual
    PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE variables with the
    config's fields as fallback.
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def open_repository(db_cfg: DatabaseConfig, page_size: int = 1000) -> Iterator[PostgresRepository]:  # pragma: no cover (thin wrapper)
    """Open a psycopg2 connection and wrap it in a PostgresRepository."""
    try:
        conn = psycopg2.connect(resolve_dsn(db_cfg))
    except psycopg2.Error as e:
        raise RepositoryError(f"could not connect to database: {_pg_message(e)}") from e
    conn.autocommit = False
    try:
        yield PostgresRepository(conn, page_size=page_size)
    finally:
        conn.close()
