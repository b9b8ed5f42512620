from __future__ import annotations

import logging

from ..db.repository import Repository
from ..excel.reader import ParseError, read_sheet_full
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import ImportConfig, ImportPolicy, TableConfig, TargetEntity
from ..models.error_record import ROW_UNKNOWN, ErrorRecord
from ..models.import_outcome import ImportOutcome
from ..models.row_data import ErrorRow
from .committer import DatabaseError, commit, uncarried_payment_fields
from .progress import ProgressTracker
from .reference_resolver import ResolutionSourceUnavailable, build_reference_maps
from .row_transformer import MIN_INSTALLMENTS, validate_rows
from .table_configs import get_config, referenced_entities

"""Import run orchestration.

One call of ``import_data`` is one sequential run:

1. re-parse the chosen sheet (the preview is capped, so it is never reused)
2. fetch the reference maps the mapped fields need
3. validate / transform every row
4. apply the table's import policy and commit
5. build the user-facing (Arabic) summary message

Row errors are accumulated and returned; ParseError,
ResolutionSourceUnavailable and DatabaseError propagate to the caller.
"""

__all__ = [
    "build_outcome_message",
    "import_data",
    "resolve_policy",
]

logger = logging.getLogger(__name__)


def resolve_policy(config: TableConfig, override: ImportPolicy | None = None) -> ImportPolicy:
    """Policy of a run: the table's own policy unless a supported override is given.

    Payments are always SEQUENTIAL; customers and transactions accept
    BEST_EFFORT or ALL_OR_NOTHING.
    """
    if override is None or override is config.policy:
        return config.policy
    if config.entity is TargetEntity.PAYMENTS or override is ImportPolicy.SEQUENTIAL:
        raise ValueError(f"policy '{override.value}' is not supported for {config.entity.value}")
    return override


def build_outcome_message(
    imported: int, errors: list[ErrorRow], valid_count: int, policy: ImportPolicy
) -> str:
    skipped = len(errors)
    skipped_note = f" تم تخطي {skipped} صفوف بسبب أخطاء." if skipped else ""
    if policy is ImportPolicy.ALL_OR_NOTHING and skipped:
        return f"فشل الاستيراد. تم العثور على {skipped} أخطاء."
    if valid_count == 0:
        return "لا توجد بيانات صالحة للاستيراد." + skipped_note
    if imported == 0:
        return "لم يتم استيراد أي سجل." + skipped_note
    if skipped:
        return f"تم استيراد {imported} سجلات بنجاح، وتم تخطي {skipped} صفوف بسبب أخطاء."
    return f"تم استيراد {imported} سجلات بنجاح."


def _log_run_error(
    error_log: ErrorLogBuffer | None, source_name: str, config: ImportConfig, error_type: str, message: str
) -> None:
    if error_log is None:
        return
    error_log.append(ErrorRecord.create(
        file=source_name,
        sheet=config.sheet_name,
        table=config.target_entity.value,
        row=ROW_UNKNOWN,
        error_type=error_type,
        message=message,
    ))


def import_data(
    file_bytes: bytes,
    config: ImportConfig,
    repository: Repository,
    *,
    min_installments: int = MIN_INSTALLMENTS,
    policy: ImportPolicy | None = None,
    error_log: ErrorLogBuffer | None = None,
    source_name: str = "<upload>",
) -> ImportOutcome:
    """Import one sheet of ``file_bytes`` into ``config.target_entity``.

    Raises:
        ParseError: the workbook or sheet cannot be read
        ResolutionSourceUnavailable: a reference map could not be fetched
        DatabaseError: the bulk insert failed (store state unknown)
        ValueError: unsupported policy override
    """
    table_config = get_config(config.target_entity)
    run_policy = resolve_policy(table_config, policy)
    table = table_config.entity.value
    if table_config.entity is TargetEntity.PAYMENTS:
        dropped = uncarried_payment_fields(config.mappings.values())
        if dropped:
            logger.warning(
                "table=%s mapped fields not stored by record_payment: %s", table, ", ".join(dropped)
            )

    try:
        rows = read_sheet_full(file_bytes, config.sheet_name)
        entities = referenced_entities(table_config, config.mappings.values())
        reference_maps = build_reference_maps(repository, entities)

        with ProgressTracker(len(rows), description=f"Validating {table}") as progress:
            validation = validate_rows(
                rows, table_config, config.mappings, reference_maps, min_installments, progress=progress
            )
        logger.info(
            "table=%s sheet=%s rows=%d valid=%d invalid=%d policy=%s",
            table,
            config.sheet_name,
            len(rows),
            len(validation.valid_rows),
            len(validation.errors),
            run_policy.value,
        )

        imported = 0
        commit_failures: list[ErrorRow] = []
        committable = validation.valid_rows
        if run_policy is ImportPolicy.ALL_OR_NOTHING and validation.errors:
            committable = []
        if committable:
            description = "Recording payments" if table_config.entity is TargetEntity.PAYMENTS else f"Inserting {table}"
            with ProgressTracker(len(committable), description=description) as progress:
                result = commit(repository, committable, table_config.entity, progress=progress)
            imported = result.inserted_count
            commit_failures = list(result.row_failures)
    except ParseError as e:
        _log_run_error(error_log, source_name, config, "PARSE_ERROR", str(e))
        raise
    except ResolutionSourceUnavailable as e:
        _log_run_error(error_log, source_name, config, "RESOLUTION_SOURCE_UNAVAILABLE", str(e))
        raise
    except DatabaseError as e:
        _log_run_error(error_log, source_name, config, "DATABASE_ERROR", str(e))
        raise

    if error_log is not None:
        for error_type, batch in (
            ("ROW_VALIDATION_ERROR", validation.errors),
            ("ROW_COMMIT_ERROR", commit_failures),
        ):
            for err in batch:
                error_log.append(ErrorRecord.create(
                    file=source_name,
                    sheet=config.sheet_name,
                    table=table,
                    row=err.row_number,
                    error_type=error_type,
                    message=err.message,
                ))

    # 行番号順に並べる（検証エラーとコミットエラーが混在するため）
    errors = sorted([*validation.errors, *commit_failures], key=lambda err: err.row_number)
    message = build_outcome_message(imported, errors, len(validation.valid_rows), run_policy)
    logger.info("table=%s imported=%d skipped=%d", table, imported, len(errors))
    return ImportOutcome(imported_count=imported, errors=errors, message=message)
