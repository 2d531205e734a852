"""
cli.py - `chtimeline` command line.

    chtimeline flame stacks.folded                 folded "a;b;c 42" lines
    chtimeline flame rows.tsv --rows               clickhouse-client TSV output
    chtimeline flame --db trace.sqlite [--query SQL]
    chtimeline query --trace-type CPU --category tables --value default.hits \\
        --from 2025-01-01T00:00 --to 2025-01-01T01:00 --cluster prod

The `query` output is meant to be fed to clickhouse-client:

    clickhouse-client --format TSV -q "$(chtimeline query ...)" > rows.tsv
    chtimeline flame rows.tsv --rows
"""
import argparse
import os
import sys
from datetime import datetime
from functools import partial
from typing import Callable, Optional

from loguru import logger

from . import source as _source
from .config import Settings
from .frames import FrameTree
from .ingest import IngestError, build_from_rows, parse_folded, read_tsv_rows
from .layout import DIRECTIONS
from .logs import setup_logging
from .queries import Category, FlamegraphParams, TraceType, flamegraph_query


def _read_lines(path: str) -> list[str]:
    with open(path, encoding="utf-8", errors="replace") as f:
        return f.read().splitlines()


def load_folded(path: str) -> FrameTree:
    return parse_folded(_read_lines(path))


def load_tsv(path: str) -> FrameTree:
    return build_from_rows(read_tsv_rows(_read_lines(path)))


def load_sqlite(path: str, query: Optional[str]) -> FrameTree:
    src = _source.open(path)
    try:
        return src.load(query)
    finally:
        src.close()


def _stdin_loader(rows: bool) -> Callable[[], FrameTree]:
    """Read piped input now; the viewer needs fd 0 for the keyboard."""
    lines = sys.stdin.read().splitlines()
    if rows:
        return lambda: build_from_rows(read_tsv_rows(lines))
    return partial(parse_folded, lines)


def _reattach_tty() -> bool:
    """Point fd 0 at the controlling terminal after piped input is consumed."""
    try:
        fd = os.open("/dev/tty", os.O_RDONLY)
    except OSError:
        return False
    os.dup2(fd, 0)
    os.close(fd)
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chtimeline",
                                     description="Explore ClickHouse trace_log flame graphs in the terminal")
    sub = parser.add_subparsers(dest="command", required=True)

    flame = sub.add_parser("flame", help="Interactive flame graph")
    flame.add_argument("input", nargs="?", help="folded stacks file, or '-' for stdin")
    flame.add_argument("--rows", action="store_true",
                       help="input is count<TAB>stack rows (clickhouse-client TSV)")
    flame.add_argument("--db", help="SQLite database with (samples, stack) rows")
    flame.add_argument("--query", help="SQL returning (samples, stack) rows (with --db)")
    flame.add_argument("--direction", choices=DIRECTIONS)
    flame.add_argument("--source-page", help="page to return to on Esc")
    flame.add_argument("--title")

    query = sub.add_parser("query", help="Print the ClickHouse flame-graph query")
    query.add_argument("--trace-type", required=True, choices=[t.value for t in TraceType])
    query.add_argument("--category", choices=[c.value for c in Category])
    query.add_argument("--value", default="", help="category value (errors: CODE:HASH)")
    query.add_argument("--from", dest="from_time", required=True, type=datetime.fromisoformat)
    query.add_argument("--to", dest="to_time", required=True, type=datetime.fromisoformat)
    query.add_argument("--cluster", default="default")
    return parser


def _cmd_flame(args, settings: Settings) -> int:
    if args.db:
        loader = partial(load_sqlite, args.db, args.query)
        title = args.title or f"Flamegraph  |  {args.db}"
    elif args.input == "-":
        loader = _stdin_loader(args.rows)
        title = args.title or "Flamegraph  |  <stdin>"
        if os.isatty(1) and not os.isatty(0) and not _reattach_tty():
            logger.warning("No terminal to read keys from; rendering statically")
    elif args.input:
        loader = partial(load_tsv if args.rows else load_folded, args.input)
        title = args.title or f"Flamegraph  |  {args.input}"
    else:
        print("chtimeline flame: give an input file or --db", file=sys.stderr)
        return 2

    from .tui import run_flamegraph
    try:
        target = run_flamegraph(loader, title=title, settings=settings)
    except (IngestError, OSError) as e:
        logger.error(f"Flame graph failed: {e}")
        print(f"Error building flamegraph: {e}", file=sys.stderr)
        return 1
    if target:
        logger.info(f"Exited towards {target}")
    return 0


def _cmd_query(args) -> int:
    params = FlamegraphParams(
        trace_type=TraceType(args.trace_type),
        category=Category(args.category) if args.category else None,
        value=args.value, from_time=args.from_time, to_time=args.to_time)
    try:
        print(flamegraph_query(params, args.cluster))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.command == "query":
        return _cmd_query(args)

    try:
        settings = Settings.from_env().override(direction=args.direction,
                                                source_page=args.source_page)
    except ValueError as e:
        print(f"chtimeline: {e}", file=sys.stderr)
        return 2
    setup_logging(settings)
    return _cmd_flame(args, settings)


if __name__ == "__main__":
    sys.exit(main())
