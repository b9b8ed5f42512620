from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from typing import Any

from ..db.repository import Repository, RepositoryError
from ..models.config_models import TargetEntity

"""Reference resolver.

Rows of a transactions sheet point at customers, and rows of a payments
sheet point at transactions (and customers), by the human-facing sequence
number rather than the internal id. Before validating such a sheet the
resolver loads every ``(id, sequence_number)`` pair of the referenced table
into a ReferenceMap.

Each sequence number is stored under its exact string form and under its
numeric-normalised form, so that a cell reading "007" matches a stored 7
and a cell reading "7.0" matches a stored "7".
"""

__all__ = [
    "ReferenceMap",
    "ResolutionSourceUnavailable",
    "build_reference_map",
    "build_reference_maps",
    "normalize_sequence_number",
]

logger = logging.getLogger(__name__)


class ResolutionSourceUnavailable(Exception):
    """The reference fetch itself failed; fatal for the whole import."""


def normalize_sequence_number(value: Any) -> str | None:
    """Numeric-normalised string form of a sequence number.

    "007" -> "7", "7.0" -> "7", "7.50" -> "7.5". Returns None for blank or
    non-numeric values.
    """
    text = str(value).strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    if number.is_integer():
        return str(int(number))
    return repr(number)


class ReferenceMap:
    """Sequence number -> internal id lookup for one referenced entity."""

    def __init__(self, entity: TargetEntity) -> None:
        self.entity = entity
        self._ids: dict[str, Any] = {}

    def add(self, sequence_number: Any, internal_id: Any) -> None:
        if sequence_number is None:
            return
        raw = str(sequence_number).strip()
        if not raw:
            return
        self._ids[raw] = internal_id
        normalized = normalize_sequence_number(raw)
        if normalized is not None:
            # exact string keys win over a colliding normalised key
            self._ids.setdefault(normalized, internal_id)

    def resolve(self, value: Any) -> Any | None:
        raw = str(value).strip()
        if raw in self._ids:
            return self._ids[raw]
        normalized = normalize_sequence_number(raw)
        if normalized is not None:
            return self._ids.get(normalized)
        return None

    def __contains__(self, value: Any) -> bool:
        return self.resolve(value) is not None

    def __len__(self) -> int:
        return len(self._ids)


def build_reference_map(repository: Repository, entity: TargetEntity) -> ReferenceMap:
    """Fetch all ``(id, sequence_number)`` pairs of ``entity`` into a ReferenceMap.

    Raises:
        ResolutionSourceUnavailable: if the fetch fails
    """
    try:
        pairs = repository.fetch_sequence_numbers(entity.value)
    except RepositoryError as e:
        raise ResolutionSourceUnavailable(
            f"تعذر جلب بيانات {entity.value} للتحقق من المراجع: {e}"
        ) from e
    ref_map = ReferenceMap(entity)
    for internal_id, sequence_number in pairs:
        ref_map.add(sequence_number, internal_id)
    logger.debug("reference map entity=%s pairs=%d keys=%d", entity.value, len(pairs), len(ref_map))
    return ref_map


def build_reference_maps(
    repository: Repository, entities: Iterable[TargetEntity]
) -> dict[TargetEntity, ReferenceMap]:
    return {entity: build_reference_map(repository, entity) for entity in entities}
