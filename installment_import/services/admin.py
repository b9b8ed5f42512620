from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from ..db.repository import Repository, RepositoryError
from ..models.config_models import TargetEntity
from ..models.import_outcome import PurgeResult
from .table_configs import get_config

"""Administrative operations: bulk data purge and table field introspection.

Purge is the administrative undo for a bad import. No import-run id is
tracked, so it can only be scoped to a time window on ``created_at``.
"""

__all__ = [
    "PurgeError",
    "get_table_fields",
    "purge",
]

logger = logging.getLogger(__name__)


class PurgeError(Exception):
    pass


def purge(
    repository: Repository,
    entity: TargetEntity | str,
    older_than_hours: float | None = None,
    now: datetime | None = None,
) -> PurgeResult:
    """Delete every row of ``entity``, or only rows created in the last ``older_than_hours``.

    Raises:
        ValueError: if ``older_than_hours`` is not positive
        PurgeError: if the store rejects the delete
    """
    config = get_config(entity)
    if older_than_hours is not None and older_than_hours <= 0:
        raise ValueError(f"older_than_hours must be positive, got {older_than_hours}")

    created_since = None
    if older_than_hours is not None:
        created_since = (now or datetime.now(UTC)) - timedelta(hours=older_than_hours)

    try:
        repository.delete_rows(config.entity.value, created_since=created_since)
    except RepositoryError as e:
        raise PurgeError(f"فشل حذف البيانات: {e}") from e

    logger.info("purged table=%s created_since=%s", config.entity.value, created_since)
    if older_than_hours is not None:
        hours = int(older_than_hours) if float(older_than_hours).is_integer() else older_than_hours
        return PurgeResult(message=f"تم حذف البيانات المستوردة في آخر {hours} ساعة من {config.name}")
    return PurgeResult(message=f"تم حذف جميع البيانات من {config.name}")


def get_table_fields(repository: Repository, entity: TargetEntity | str) -> list[str]:
    """Column names of ``entity`` taken from one sample row ([] for an empty table)."""
    config = get_config(entity)
    row = repository.sample_row(config.entity.value)
    return list(row.keys()) if row else []
