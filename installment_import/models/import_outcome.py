from __future__ import annotations

from dataclasses import dataclass, field

from .row_data import ErrorRow

"""Result models returned by the commit, import and purge operations."""

__all__ = [
    "CommitResult",
    "ImportOutcome",
    "PurgeResult",
]


@dataclass(frozen=True)
class CommitResult:
    """What the committer managed to write.

    ``row_failures`` only carries per-row commit failures (payments path);
    validation errors are tracked separately by the caller.
    """
    inserted_count: int
    row_failures: list[ErrorRow] = field(default_factory=list)


@dataclass(frozen=True)
class ImportOutcome:
    """Terminal result of one import run, never mutated once produced."""
    imported_count: int
    errors: list[ErrorRow]
    message: str

    @property
    def skipped_count(self) -> int:
        return len(self.errors)


@dataclass(frozen=True)
class PurgeResult:
    message: str
