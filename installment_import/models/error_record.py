from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

Every row rejected during an import run (validation or commit) is written
as one ErrorRecord. ``row`` is the spreadsheet row number (first data row =
2); -1 marks run-level errors where no row applies (parse failure,
unreachable reference source, failed bulk insert).
"""

__all__ = [
    "ErrorRecord",
    "ROW_UNKNOWN",
]

ROW_UNKNOWN = -1


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Workbook name being imported
        sheet: Sheet name within the workbook
        table: Target table of the run
        row: Row number, -1 when unknown
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: User-facing message (Arabic) or the store's own error text
    """
    timestamp: str
    file: str
    sheet: str
    table: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(file: str, sheet: str, table: str, row: int, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            sheet=sheet,
            table=table,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        # Arabic messages are kept readable in the log file
        return json.dumps(asdict(self), ensure_ascii=False)
