from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""Row-level results of the validation pass.

A source row becomes either a ValidRow (target field -> coerced value,
derived fields included) or an ErrorRow. Row numbers are 1-based and offset
by the header row, so the first data row is row 2.
"""

__all__ = [
    "HEADER_OFFSET",
    "ErrorRow",
    "ValidRow",
    "ValidationResult",
    "row_number_for",
]

HEADER_OFFSET = 2


def row_number_for(index: int) -> int:
    """Spreadsheet row number of the data row at 0-based ``index``."""
    return index + HEADER_OFFSET


@dataclass(frozen=True)
class ValidRow:
    """A row that survived every field transform."""
    row_number: int
    values: dict[str, Any]


@dataclass(frozen=True)
class ErrorRow:
    """A rejected row and the (Arabic) reason shown to the user."""
    row_number: int
    message: str


@dataclass
class ValidationResult:
    valid_rows: list[ValidRow] = field(default_factory=list)
    errors: list[ErrorRow] = field(default_factory=list)

    def add(self, result: ValidRow | ErrorRow) -> None:
        if isinstance(result, ErrorRow):
            self.errors.append(result)
        else:
            self.valid_rows.append(result)
