from __future__ import annotations

from ..models.import_outcome import ImportOutcome

"""SUMMARY line rendering.

Format:
SUMMARY table={table} sheet={sheet} imported={n} skipped={m} elapsed_sec={s}
"""


def _format_seconds(elapsed: float) -> str:
    if elapsed == 0:
        return "0"
    if elapsed == int(elapsed):
        return str(int(elapsed))
    if elapsed < 0.01:
        # avoid scientific notation for very small numbers
        return f"{elapsed:.6f}".rstrip("0").rstrip(".")
    return f"{elapsed:.3f}".rstrip("0").rstrip(".")


def render_summary_line(table: str, sheet: str, outcome: ImportOutcome, elapsed_seconds: float) -> str:
    """Render the SUMMARY line of one import run.

    Examples:
        >>> outcome = ImportOutcome(imported_count=2, errors=[], message="")
        >>> render_summary_line("customers", "Sheet1", outcome, 1.5)
        'SUMMARY table=customers sheet=Sheet1 imported=2 skipped=0 elapsed_sec=1.5'
    """
    return (
        f"SUMMARY table={table} "
        f"sheet={sheet} "
        f"imported={outcome.imported_count} "
        f"skipped={outcome.skipped_count} "
        f"elapsed_sec={_format_seconds(elapsed_seconds)}"
    )
