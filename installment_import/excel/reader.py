from __future__ import annotations

import io
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any

import pandas as pd

from ..models.workbook import Row, WorkbookPreview

"""Workbook reader.

The first row of every sheet is the header; the remaining rows become row
dicts keyed by header. Every cell is rendered as text: blank cells become
"", surrounding whitespace is trimmed and rows whose cells are all blank
are dropped. Reading never touches the store.
"""

__all__ = [
    "PREVIEW_ROWS",
    "ParseError",
    "SheetData",
    "normalize_sheet",
    "read_sheet_full",
    "read_workbook",
]

PREVIEW_ROWS = 5


class ParseError(Exception):
    """Raised when the bytes are not a readable workbook or the sheet is missing."""


@dataclass
class SheetData:
    sheet_name: str
    columns: list[str]
    rows: list[Row]


def _open_workbook(file_bytes: bytes) -> pd.ExcelFile:
    if not file_bytes:
        raise ParseError("الملف فارغ ولا يحتوي على بيانات.")
    try:
        return pd.ExcelFile(io.BytesIO(file_bytes))
    except Exception as e:
        raise ParseError(f"تعذرت قراءة الملف كجدول بيانات: {e}") from e


def _read_frames(
    file_bytes: bytes, target_sheets: Iterable[str] | None = None
) -> tuple[list[str], dict[str, pd.DataFrame]]:
    """Read raw frames (no header applied) keyed by sheet name.

    Returns the workbook's sheet names in their original order together with
    the frames of the requested sheets (all sheets when ``target_sheets`` is None).
    """
    xls = _open_workbook(file_bytes)
    names = [str(n) for n in xls.sheet_names]
    wanted = set(target_sheets) if target_sheets is not None else None
    frames: dict[str, pd.DataFrame] = {}
    try:
        for name in names:
            if wanted is not None and name not in wanted:
                continue
            # 生読み: ヘッダは normalize_sheet で 1 行目から適用する
            frames[name] = xls.parse(name, header=None, dtype=object, keep_default_na=False, na_values=[""])
    except Exception as e:
        raise ParseError(f"تعذرت قراءة الملف كجدول بيانات: {e}") from e
    finally:
        xls.close()
    return names, frames


def cell_to_text(value: Any) -> str:
    """Render a raw cell value the way it is shown to the user."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _header_names(raw_header: list[Any]) -> list[str | None]:
    seen: dict[str, int] = {}
    columns: list[str | None] = []
    for cell in raw_header:
        name = cell_to_text(cell)
        if not name:
            columns.append(None)  # 見出しの無い列は無視
            continue
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 0
        columns.append(name)
    return columns


def normalize_sheet(df: pd.DataFrame, sheet_name: str, limit: int | None = None) -> SheetData:
    """Apply the first row as header and turn the remaining rows into text row dicts."""
    if df.shape[0] == 0 or (limit is not None and limit <= 0):
        return SheetData(sheet_name=sheet_name, columns=[], rows=[])
    header = _header_names(df.iloc[0].tolist())
    columns = [c for c in header if c is not None]
    rows: list[Row] = []
    for raw in df.iloc[1:].itertuples(index=False, name=None):
        row: Row = {}
        for col, val in zip(header, raw, strict=False):
            if col is None:
                continue
            row[col] = cell_to_text(val)
        # 全セル空の行はスキップ
        if not any(row.values()):
            continue
        for col in columns:
            row.setdefault(col, "")
        rows.append(row)
        if limit is not None and len(rows) >= limit:
            break
    return SheetData(sheet_name=sheet_name, columns=columns, rows=rows)


def read_workbook(file_bytes: bytes, preview_rows: int = PREVIEW_ROWS) -> WorkbookPreview:
    """Parse a workbook and return its sheet names plus the first rows of each sheet."""
    names, frames = _read_frames(file_bytes)
    preview = {name: normalize_sheet(frames[name], name, limit=preview_rows).rows for name in names}
    return WorkbookPreview(sheet_names=names, preview=preview)


def read_sheet_full(file_bytes: bytes, sheet_name: str) -> list[Row]:
    """Return every non-blank data row of ``sheet_name``."""
    names, frames = _read_frames(file_bytes, target_sheets=[sheet_name])
    if sheet_name not in frames:
        raise ParseError(f"الورقة '{sheet_name}' غير موجودة في الملف. الأوراق المتاحة: {', '.join(names)}")
    return normalize_sheet(frames[sheet_name], sheet_name).rows
