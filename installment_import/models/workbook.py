from __future__ import annotations

from dataclasses import dataclass

"""Workbook preview model.

A preview lists the workbook's sheets in their original order and keeps at
most the first few data rows of each one, enough for the user to build a
column mapping before committing an import.
"""

Row = dict[str, str]


@dataclass(frozen=True)
class WorkbookPreview:
    sheet_names: list[str]
    preview: dict[str, list[Row]]
