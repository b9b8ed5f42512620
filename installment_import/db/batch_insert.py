from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

"""DB batch insert helper.

Rows arrive as dicts (target column -> value). The column list is the union
of their keys in first-seen order; a row lacking a column sends NULL for it.
One INSERT ... VALUES %s statement is issued through
psycopg2.extras.execute_values, paged by ``page_size``.
"""

__all__ = [
    "BatchInsertError",
    "BatchMetrics",
    "InsertResult",
    "batch_insert",
    "collect_columns",
]


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of a single batch insert call."""
    batch_size: int
    elapsed_seconds: float
    start_time: float
    end_time: float


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    columns: list[str]


def quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def collect_columns(rows: Sequence[dict[str, Any]]) -> list[str]:
    columns: list[str] = []
    seen: set[str] = set()
    for row in rows:
        for key in row:
            if key not in seen:
                seen.add(key)
                columns.append(key)
    return columns


def batch_insert(
    cursor: Any,
    table: str,
    rows: Sequence[dict[str, Any]],
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Perform a batched INSERT using psycopg2.extras.execute_values.

    Parameters
    ----------
    cursor: psycopg2 cursor (transaction handled by the caller)
    table: target table name (one of the importable tables)
    rows: row dicts to insert
    page_size: execute_values page size
    metrics_callback: receives BatchMetrics after the call; not invoked for empty input
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0, columns=[])

    columns = collect_columns(rows_list)
    values = [[row.get(col) for col in columns] for row in rows_list]
    cols_sql = ",".join(quote_ident(c) for c in columns)
    sql = f"INSERT INTO {quote_ident(table)} ({cols_sql}) VALUES %s"

    start_time = time.time()
    try:
        execute_values(cursor, sql, values, page_size=page_size)
    except Exception as e:
        raise BatchInsertError(str(e).strip()) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(BatchMetrics(
                batch_size=len(rows_list),
                elapsed_seconds=end_time - start_time,
                start_time=start_time,
                end_time=end_time,
            ))

    return InsertResult(inserted_rows=len(rows_list), columns=columns)
