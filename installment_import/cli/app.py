from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, Settings, load_config, load_mapping_file
from ..db.postgres import open_repository
from ..db.repository import RepositoryError
from ..excel.reader import ParseError, read_workbook
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..models.config_models import ImportConfig, TargetEntity
from ..services.admin import PurgeError, get_table_fields, purge
from ..services.committer import DatabaseError
from ..services.importer import import_data
from ..services.reference_resolver import ResolutionSourceUnavailable
from ..services.summary import render_summary_line
from ..services.table_configs import get_config

"""Command line entrypoint.

Subcommands:
- preview FILE                 sheet names and the first rows of each sheet
- fields TABLE                 column names of a table (from one sample row)
- import FILE --table --sheet  import one sheet with a column mapping
- purge TABLE --yes            delete imported rows (optionally a time window)

Exit codes: 0 success, 2 completed with row errors, 1 fatal.
"""

EXIT_SUCCESS = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

_SUMMARY_PREFIX = "SUMMARY "


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv.

    override=True により .env の値が既存の環境変数より優先される。
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_mapping(pairs: list[str]) -> dict[str, str]:
    mappings: dict[str, str] = {}
    for pair in pairs:
        # 列名に "=" が含まれる場合に備えて右側で分割する
        source, sep, target = pair.rpartition("=")
        if not sep or not source.strip() or not target.strip():
            raise ConfigError(f"invalid --map value (expected SRC=TARGET): {pair!r}")
        mappings[source.strip()] = target.strip()
    return mappings


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="installment-import", description="Spreadsheet importer for customers, transactions and payments"
    )
    p.add_argument("--config", type=Path, default=None, help=f"Settings file (default: {DEFAULT_CONFIG_PATH})")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    preview = sub.add_parser("preview", help="Show sheet names and the first rows")
    preview.add_argument("file", type=Path)
    preview.add_argument("--rows", type=int, default=None, help="Rows per sheet (default from settings)")

    fields = sub.add_parser("fields", help="List the column names of a table")
    fields.add_argument("table", choices=[e.value for e in TargetEntity])

    imp = sub.add_parser("import", help="Import one sheet into a table")
    imp.add_argument("file", type=Path)
    imp.add_argument("--table", required=True, choices=[e.value for e in TargetEntity])
    imp.add_argument("--sheet", required=True)
    group = imp.add_mutually_exclusive_group(required=True)
    group.add_argument("--map", action="append", metavar="SRC=TARGET", help="Column mapping (repeatable)")
    group.add_argument("--mapping-file", type=Path, help="YAML mapping of source column to target field")

    pg = sub.add_parser("purge", help="Delete imported rows from a table")
    pg.add_argument("table", choices=[e.value for e in TargetEntity])
    pg.add_argument("--older-than-hours", type=float, default=None,
                    help="Only delete rows created within the last H hours")
    pg.add_argument("--yes", action="store_true", help="Confirm the deletion")
    return p


def _read_file(path: Path) -> bytes:
    if not path.exists():
        raise ParseError(f"file not found: {path}")
    return path.read_bytes()


def _cmd_preview(args: argparse.Namespace, settings: Settings) -> int:
    rows = args.rows if args.rows is not None else settings.preview_rows
    preview = read_workbook(_read_file(args.file), preview_rows=rows)
    print(f"FILE: {args.file.name}")
    for name in preview.sheet_names:
        sample = preview.preview.get(name, [])
        columns = list(sample[0].keys()) if sample else []
        print(f"  SHEET: {name} cols={columns}")
        for row in sample:
            print(f"    {row}")
    return EXIT_SUCCESS


def _cmd_fields(args: argparse.Namespace, settings: Settings) -> int:
    with open_repository(settings.database, page_size=settings.page_size) as repository:
        names = get_table_fields(repository, args.table)
    if not names:
        print(f"{args.table}: no rows to sample")
    for name in names:
        print(name)
    return EXIT_SUCCESS


def _cmd_import(args: argparse.Namespace, settings: Settings, logger) -> int:
    mappings = _parse_mapping(args.map) if args.map else load_mapping_file(args.mapping_file)
    entity = TargetEntity(args.table)
    table_config = get_config(entity)
    unknown = [t for t in mappings.values() if table_config.field_spec(t) is None]
    if unknown:
        logger.warning(f"mapping targets not defined for {entity.value}: {', '.join(unknown)}")

    config = ImportConfig(target_entity=entity, sheet_name=args.sheet, mappings=mappings)
    file_bytes = _read_file(args.file)
    error_log = ErrorLogBuffer()

    started = time.perf_counter()
    try:
        with open_repository(settings.database, page_size=settings.page_size) as repository:
            outcome = import_data(
                file_bytes,
                config,
                repository,
                min_installments=settings.min_installments,
                policy=settings.policy_for(entity),
                error_log=error_log,
                source_name=args.file.name,
            )
    finally:
        try:
            log_path = error_log.flush()
        except OSError as e:
            logger.warning(f"failed to write error log: {e}")
            log_path = None
    elapsed = time.perf_counter() - started

    for err in outcome.errors:
        logger.warning(f"row={err.row_number} {err.message}")
    logger.info(outcome.message)
    if log_path is not None:
        logger.info(f"error log: {log_path}")

    summary_line = render_summary_line(entity.value, args.sheet, outcome, elapsed)
    log_summary(summary_line[len(_SUMMARY_PREFIX):])
    return EXIT_PARTIAL_FAILURE if outcome.errors else EXIT_SUCCESS


def _cmd_purge(args: argparse.Namespace, settings: Settings, logger) -> int:
    if not args.yes:
        logger.error("purge deletes data; re-run with --yes to confirm")
        return EXIT_FATAL
    with open_repository(settings.database, page_size=settings.page_size) as repository:
        result = purge(repository, args.table, older_than_hours=args.older_than_hours)
    logger.info(result.message)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみ sys.argv を読む (テストで main([...]) を呼ぶため)
    if argv is None:
        argv = sys.argv[1:]
    try:
        args = _build_parser().parse_args(argv)
    except SystemExit as e:
        # argparse の使用法エラー (2) は部分失敗と区別するため致命扱いにする
        return EXIT_FATAL if e.code else EXIT_SUCCESS
    if args.debug:
        setup_logging(debug=True)
        logger.debug("debug mode enabled")

    # .env を最優先で読み込む (DB 接続パラメータ優先順位保証)
    _load_env_file(Path(".env"), override=True)
    try:
        settings = load_config(args.config, required=args.config is not None)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        if args.command == "preview":
            return _cmd_preview(args, settings)
        if args.command == "fields":
            return _cmd_fields(args, settings)
        if args.command == "import":
            return _cmd_import(args, settings, logger)
        return _cmd_purge(args, settings, logger)
    except ConfigError as e:
        logger.error(f"config: {e}")
    except ParseError as e:
        logger.error(f"parse: {e}")
    except ResolutionSourceUnavailable as e:
        logger.error(f"resolution: {e}")
    except DatabaseError as e:
        logger.error(f"database: {e}")
    except PurgeError as e:
        logger.error(f"purge: {e}")
    except RepositoryError as e:
        logger.error(f"database: {e}")
    except ValueError as e:
        logger.error(f"invalid argument: {e}")
    return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
