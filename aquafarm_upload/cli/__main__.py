from __future__ import annotations

import argparse
import mimetypes
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

from aquafarm_upload.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from aquafarm_upload.db.backend import Backend, PostgresBackend
from aquafarm_upload.db.connection import db_connection
from aquafarm_upload.excel.reader import CSV_MIME, XLS_MIME, XLSX_MIME, DecodeError, decode_upload
from aquafarm_upload.logging.error_log import ErrorLogBuffer, ErrorRecord
from aquafarm_upload.logging.init import log_summary, set_debug, setup_logging
from aquafarm_upload.models.config_models import UploadConfig, UploadTemplate
from aquafarm_upload.services.mapper import MappingError
from aquafarm_upload.services.summary import render_summary_line, summarize_errors
from aquafarm_upload.services.wizard import ReferenceDataError, UploadWizard

"""CLI entrypoint.

Runs the upload wizard non-interactively for one file:
- load config (config/upload.yml, optional) and .env
- connect to PostgreSQL and load cages / feed types
- decode + validate; any validation error rejects the whole file
- map + single batch insert (skipped with --dry-run)

Also writes the upload template (--template DIR), prints the decoded header
and first rows (--inspect-data) and lists reference data (--list-references).
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_REJECTED = 2

_EXTENSION_MIME = {
    ".xlsx": XLSX_MIME,
    ".xls": XLS_MIME,
    ".csv": CSV_MIME,
}


def guess_mime_type(path: Path) -> str:
    mime = _EXTENSION_MIME.get(path.suffix.lower())
    if mime is None:
        mime = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return mime


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv (values override the process environment)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


@contextmanager
def _open_backend(cfg: UploadConfig) -> Iterator[Backend]:  # pragma: no cover (thin wrapper)
    with db_connection(cfg.database) as conn:
        yield PostgresBackend(conn)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Bulk upload of daily cage records (Excel / CSV)")
    p.add_argument("file", nargs="?", help="spreadsheet to upload (.xlsx, .xls, .csv)")
    p.add_argument("--type", dest="record_type", default="daily_records", help="upload type (template name)")
    p.add_argument("--config", type=Path, default=None, help=f"config file (default: {DEFAULT_CONFIG_PATH})")
    p.add_argument("--dry-run", action="store_true", help="validate and map rows without inserting")
    p.add_argument("--template", type=Path, metavar="DIR", help="write the upload template into DIR")
    p.add_argument("--inspect-data", action="store_true", help="print header & first rows then exit")
    p.add_argument("--list-references", action="store_true", help="print available cages and feed types")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _inspect_data(path: Path, template: UploadTemplate) -> int:
    if not path.exists():
        print(f"inspect: file not found: {path}")
        return EXIT_FATAL
    try:
        sheet = decode_upload(path.read_bytes(), guess_mime_type(path), max_rows=template.max_rows)
    except DecodeError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    print(f"FILE: {path.name} rows={len(sheet)} cols={sheet.columns}")
    for row_number, row in sheet.numbered_rows()[:3]:
        # datetime 含む場合は isoformat で表示
        safe = {k: (v.isoformat() if hasattr(v, "isoformat") else v) for k, v in row.items()}
        print(f"  row {row_number}: {safe}")
    return EXIT_SUCCESS


def _print_references(wizard: UploadWizard) -> None:
    print("Available cages:")
    for cage in wizard.cages or ():
        print(f"  {cage.get('code') or '-'}\t{cage.get('name')}")
    print("Available feed types:")
    for ft in wizard.feed_types or ():
        print(f"  {ft.get('name')}\tprice_per_kg={ft.get('price_per_kg')}")


def _run(args: argparse.Namespace, cfg: UploadConfig, template: UploadTemplate, backend: Backend) -> int:
    logger = setup_logging()
    wizard = UploadWizard(
        backend,
        template,
        cage_table=cfg.cage_table,
        feed_type_table=cfg.feed_type_table,
        show_progress=True,
    )
    try:
        wizard.load_references()
    except ReferenceDataError as e:
        logger.error(str(e))
        return EXIT_FATAL

    if args.list_references:
        _print_references(wizard)
    if args.template is not None:
        name, data = wizard.download_template()
        args.template.mkdir(parents=True, exist_ok=True)
        out = args.template / name
        out.write_bytes(data)
        logger.info(f"template written: {out}")
    if not args.file:
        return EXIT_SUCCESS

    path = Path(args.file)
    if not path.exists():
        logger.error(f"file not found: {path}")
        return EXIT_FATAL

    if not wizard.select_file(path.read_bytes(), guess_mime_type(path), path.name):
        return EXIT_FATAL

    error_log = ErrorLogBuffer()
    if wizard.errors:
        for line in summarize_errors(wizard.errors):
            logger.error(line)
        error_log.extend_validation_errors(path.name, wizard.errors)
        fp = error_log.flush()
        logger.info(f"{len(wizard.errors)} validation errors, nothing uploaded (error log: {fp})")
        return EXIT_REJECTED

    wizard.continue_to_confirm()

    if args.dry_run:
        try:
            records = wizard.map_session_rows()
        except MappingError as e:
            logger.error(str(e))
            return EXIT_REJECTED
        logger.info(f"dry-run: {len(records)} records ready, nothing inserted")
        return EXIT_SUCCESS

    result = wizard.confirm()
    # log_summary が "SUMMARY " を付与するので除去して渡す
    log_summary(render_summary_line(result)[len("SUMMARY "):])
    if not result.success:
        error_log.append(ErrorRecord.create(path.name, -1, "", "UPLOAD_FAILED", result.error or ""))
        error_log.flush()
        return EXIT_REJECTED
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみシステム引数を読む (テストで main([]) を渡すケース)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)

    if args.debug:
        set_debug(logger)
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        if args.config is not None:
            cfg = load_config(args.config)
        else:
            cfg = load_config(DEFAULT_CONFIG_PATH, required=False)
        template = cfg.template_for(args.record_type)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    except KeyError as e:
        logger.error(f"config: {e.args[0]}")
        return EXIT_FATAL

    if args.inspect_data:
        if not args.file:
            logger.error("inspect: no file given")
            return EXIT_FATAL
        return _inspect_data(Path(args.file), template)

    if not (args.file or args.template or args.list_references):
        logger.error("nothing to do: give a file, --template DIR or --list-references")
        return EXIT_FATAL

    try:
        with _open_backend(cfg) as backend:
            return _run(args, cfg, template, backend)
    except psycopg2.Error as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
