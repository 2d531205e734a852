"""
source.py - Open a SQLite trace database and read flame-graph rows.

A thin wrapper around an exported trace_log table (or any table/query that
yields (samples, stack) rows). The live ClickHouse connection lives outside
this tool; queries.py builds the SQL for it.
"""
import sqlite3
from dataclasses import dataclass, field
from typing import Optional

from .frames import FrameTree
from .ingest import build_from_rows

DEFAULT_QUERY = """
    SELECT samples, stack FROM trace_stacks
"""


@dataclass
class SourceMeta:
    """Discovered metadata from a trace database."""
    tables: list[str]
    row_counts: dict[str, int] = field(default_factory=dict)


class TraceSource:
    """Handle to an opened SQLite trace database."""

    def __init__(self, path: str):
        self.path = path
        # Loads run on the ingestion worker thread, not the one that opened us.
        self.conn = sqlite3.connect(path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.meta = self._discover()

    def _discover(self) -> SourceMeta:
        tables = [r[0] for r in self.conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")]
        counts = {t: self.conn.execute(f'SELECT COUNT(*) FROM "{t}"').fetchone()[0]
                  for t in tables}
        return SourceMeta(tables=tables, row_counts=counts)

    def rows(self, query: Optional[str] = None, params: tuple = ()):
        """Cursor over (samples, stack) rows."""
        return self.conn.execute(query or DEFAULT_QUERY, params)

    def load(self, query: Optional[str] = None, params: tuple = ()) -> FrameTree:
        """Run `query` and aggregate its rows into a finalized tree."""
        return build_from_rows(self.rows(query, params))

    def close(self):
        self.conn.close()


def open(path: str) -> TraceSource:
    """Open a SQLite trace database."""
    return TraceSource(path)
