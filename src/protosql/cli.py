from __future__ import annotations

import argparse
import json
from dataclasses import asdict, is_dataclass
from enum import Enum
from pathlib import Path

from loguru import logger

from .api import iter_proto_files, parse_file
from .errors import ParseError, SchemaError
from .log import configure_logging
from .naming import default_message_name, default_table_name, find_message
from .schema import default_schema, discover_table_columns
from .verify import verify_message_with_columns


EXIT_OK = 0
EXIT_ERROR = 1
EXIT_MISMATCH = 2


def _to_jsonable(obj):
    if is_dataclass(obj):
        return {k: _to_jsonable(v) for k, v in asdict(obj).items()}
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, range):
        # inclusive bounds, as written in the source
        return {"start": obj.start, "end": obj.stop - 1}
    if isinstance(obj, (tuple, list)):
        return [_to_jsonable(x) for x in obj]
    if isinstance(obj, dict):
        return {str(k): _to_jsonable(v) for k, v in obj.items()}
    return obj


def _build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="protosql",
        description="Parse .proto files and check messages against database tables",
    )
    sub = ap.add_subparsers(dest="command", required=True)

    p_parse = sub.add_parser("parse", help="Parse .proto files")
    p_parse.add_argument("files", nargs="+", help=".proto files")
    p_parse.add_argument("--json", action="store_true", help="Print parsed AST as JSON")
    _add_verbosity(p_parse)

    p_check = sub.add_parser(
        "check",
        help="Check messages against table columns",
        description=(
            "Validate protobuf messages against database tables. With --dir, each "
            ".proto file in the directory is expected to hold a message named after "
            "the file (as CamelCase) and a table named after the file."
        ),
    )
    p_check.add_argument(
        "-u", "--uri", required=True, help="Database URI (postgres://..., sqlite:///path or a file path)"
    )
    p_check.add_argument(
        "-s", "--schema", help="Database schema (default: public for PostgreSQL, main for SQLite)"
    )
    p_check.add_argument("-t", "--table", help="Table name (default: file base name)")
    p_check.add_argument("-m", "--message", help="Message to check (default: file base name as CamelCase)")
    src = p_check.add_mutually_exclusive_group()
    src.add_argument("-f", "--file", help="Proto file")
    src.add_argument("-d", "--dir", help="Directory of proto files")
    _add_verbosity(p_check)
    return ap


def _add_verbosity(p: argparse.ArgumentParser) -> None:
    g = p.add_mutually_exclusive_group()
    g.add_argument("-v", "--verbose", action="store_true", help="Print more information")
    g.add_argument("-q", "--quiet", action="store_true", help="Only print errors and warnings")


def _load(path: Path):
    try:
        return parse_file(path)
    except ParseError as e:
        logger.debug(str(e))
        raise


def _check_file(path: Path, args: argparse.Namespace) -> int:
    proto = _load(path)
    logger.info(f"loaded proto file '{path}'")

    message_name = args.message
    if message_name is None:
        message_name = default_message_name(path)
        if args.dir is None:
            logger.info(f"--message not specified, assuming message '{message_name}'")
    message = find_message(proto, message_name)
    logger.info(f"found message '{message_name}'")

    table = args.table
    if table is None:
        table = default_table_name(path)
        if args.dir is None:
            logger.info(f"--table not specified, assuming table '{table}'")
    schema = args.schema if args.schema is not None else default_schema(args.uri)
    columns = discover_table_columns(args.uri, schema, table)
    logger.info("connected to database")

    if not columns:
        logger.warning(f"table {schema}.{table} has no columns")
        return EXIT_MISMATCH
    logger.info(f"found {len(columns)} columns on table {schema}.{table}")

    if not verify_message_with_columns(message, columns):
        logger.error("found mismatch in schemas")
        return EXIT_MISMATCH
    logger.info(f"{path.name} is valid")
    return EXIT_OK


def _run_check(args: argparse.Namespace) -> int:
    if args.dir is not None:
        paths = iter_proto_files(args.dir)
    elif args.file is not None:
        paths = [Path(args.file)]
    else:
        logger.error("no --file or --dir specified")
        return EXIT_ERROR

    for path in paths:
        code = _check_file(path, args)
        if code != EXIT_OK:
            return code
    return EXIT_OK


def _run_parse(args: argparse.Namespace) -> int:
    files = {str(p): _load(Path(p)) for p in args.files}
    if args.json:
        payload = {k: _to_jsonable(v) for k, v in files.items()}
        print(json.dumps(payload, indent=2, sort_keys=True))
    else:
        for p in files:
            print(p)
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = _build_arg_parser().parse_args(argv)
    configure_logging(verbose=args.verbose, quiet=args.quiet)

    try:
        if args.command == "parse":
            return _run_parse(args)
        return _run_check(args)
    except ParseError:
        logger.error("could not parse proto file")
    except LookupError as e:
        logger.error(f"could not find {e.args[0]}")
    except SchemaError as e:
        logger.error(str(e))
    except OSError as e:
        logger.error(f"could not read {e.filename}: {e.strerror}")
    return EXIT_ERROR
