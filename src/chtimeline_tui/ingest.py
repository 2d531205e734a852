"""
ingest.py - Turn folded stacks or query rows into a FrameTree.

Two front-ends, both reducing to FrameTree.add_stack():

  * folded text: "main;query;read 120" per line (Brendan Gregg format)
  * query rows: (samples, "main;query;read") pairs from a DB-API cursor

Every call builds a fresh tree; ingestion never merges into a tree that is
already on screen.
"""
import re
from typing import Iterable, Optional

from loguru import logger

from .frames import FrameTree

STACK_SEP = ";"


class IngestError(Exception):
    """Ingestion of a batch failed."""


class RowScanError(IngestError):
    """A query row could not be read as (count, stack).

    The batch is aborted but the frames aggregated before the bad row are
    kept: `tree` holds that partial tree.
    """

    def __init__(self, message: str, row_number: int, tree: FrameTree):
        super().__init__(message)
        self.row_number = row_number
        self.tree = tree


def split_stack(stack: str) -> list[str]:
    return stack.split(STACK_SEP) if stack else []


def parse_folded_line(line: str) -> Optional[tuple[list[str], int]]:
    """
    Parse "a;b;c 42" into (["a", "b", "c"], 42).

    The count is the last whitespace-separated field, so labels may contain
    spaces. Returns None for lines that don't fit the format.
    """
    parts = line.strip().rsplit(None, 1)
    if len(parts) != 2:
        return None
    stack, count_str = parts
    try:
        count = int(count_str)
    except ValueError:
        return None
    if count < 0:
        return None
    return split_stack(stack), count


def parse_folded(lines: Iterable[str]) -> FrameTree:
    """Build a finalized tree from folded-stack text lines."""
    tree = FrameTree()
    skipped = 0
    for lineno, line in enumerate(lines, 1):
        if not line.strip():
            continue
        parsed = parse_folded_line(line)
        if parsed is None:
            skipped += 1
            logger.debug(f"Skipping malformed line {lineno}: {line.rstrip()[:80]!r}")
            continue
        tree.add_stack(*parsed)
    tree.finalize()
    logger.info(f"Folded input: {len(tree) - 1} frames, {tree.total_count} samples, "
                f"{skipped} lines skipped")
    return tree


def _scan(row) -> tuple[int, str]:
    count, stack = row
    if isinstance(stack, bytes):
        stack = stack.decode("utf-8", errors="replace")
    if isinstance(count, bool) or not isinstance(count, (int, str)) or not isinstance(stack, str):
        raise TypeError(f"expected (int, str), got ({type(count).__name__}, "
                        f"{type(stack).__name__})")
    count = int(count)  # str counts must be integral text; "2.5" raises
    if count < 0:
        raise ValueError(f"negative sample count {count}")
    return count, stack


def build_from_rows(rows: Iterable, tree: Optional[FrameTree] = None) -> FrameTree:
    """
    Build a finalized tree from (count, stack) rows.

    `rows` is anything iterable: a sqlite3/DB-API cursor, a list of tuples,
    or read_tsv_rows(). A row that fails to scan aborts the batch with
    RowScanError; the partially aggregated tree is not rolled back.
    """
    tree = tree if tree is not None else FrameTree()
    n = 0
    it = iter(rows)
    while True:
        try:
            row = next(it)
        except StopIteration:
            break
        except Exception as e:
            tree.finalize()
            raise RowScanError(f"reading row {n + 1}: {e}", n + 1, tree) from e
        n += 1
        try:
            count, stack = _scan(row)
        except (TypeError, ValueError) as e:
            tree.finalize()
            raise RowScanError(f"scanning row {n}: {e}", n, tree) from e
        tree.add_stack(split_stack(stack), count)
    tree.finalize()
    logger.info(f"Query rows: {n} rows, {len(tree) - 1} frames, {tree.total_count} samples")
    return tree


_TSV_ESCAPES = {"b": "\b", "f": "\f", "r": "\r", "n": "\n", "t": "\t", "0": "\0"}
_TSV_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)


def unescape_tsv(field: str) -> str:
    """Undo ClickHouse TSV escaping (\\t, \\n, \\\\ ...) in one field."""
    return _TSV_ESCAPE_RE.sub(lambda m: _TSV_ESCAPES.get(m.group(1), m.group(1)), field)


def read_tsv_rows(lines: Iterable[str]):
    """
    Yield raw (count, stack) rows from `clickhouse-client --format TSV` output.

    Values are passed through as text; build_from_rows() does the scanning,
    so a bad count surfaces there as a RowScanError.
    """
    for line in lines:
        line = line.rstrip("\r\n")
        if not line:
            continue
        count, sep, stack = line.partition("\t")
        if not sep:
            yield (line,)
            continue
        stack = unescape_tsv(stack)
        try:
            count = int(count)
        except ValueError:
            pass  # left as text for build_from_rows to reject
        yield count, stack
