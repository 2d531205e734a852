"""Tests for the CLI, query builder, settings and static rendering."""
from datetime import datetime

import pytest


T0 = datetime(2025, 3, 1, 10, 0, 0)
T1 = datetime(2025, 3, 1, 11, 30, 0)


def test_query_by_table():
    from chtimeline_tui.queries import Category, FlamegraphParams, TraceType, flamegraph_query
    sql = flamegraph_query(FlamegraphParams(TraceType.CPU, T0, T1, Category.TABLE, "default.hits"),
                           cluster="prod")
    assert "clusterAllReplicas('prod', merge(system, '^trace_log'))" in sql
    assert "hasAll(tables, ['default.hits'])" in sql
    assert "trace_type = 'CPU'" in sql
    assert "toDate('2025-03-01')" in sql
    assert "parseDateTimeBestEffort('2025-03-01 11:30:00" in sql
    assert "allow_introspection_functions=1" in sql


def test_query_time_range_only_and_host():
    from chtimeline_tui.queries import Category, FlamegraphParams, TraceType, flamegraph_query
    sql = flamegraph_query(FlamegraphParams(TraceType.MEMORY, T0, T1), cluster="c")
    assert "WHERE event_date >= toDate" in sql
    assert "normalized_query_hash" not in sql
    sql = flamegraph_query(FlamegraphParams(TraceType.REAL, T0, T1, Category.HOST, "ch-1"), "c")
    assert "hostName() = 'ch-1'" in sql


def test_query_error_category_uses_hash():
    from chtimeline_tui.queries import Category, FlamegraphParams, TraceType, flamegraph_query
    sql = flamegraph_query(FlamegraphParams(TraceType.CPU, T0, T1, Category.ERROR, "241:1234567"), "c")
    assert "normalized_query_hash = '1234567'" in sql
    with pytest.raises(ValueError):
        flamegraph_query(FlamegraphParams(TraceType.CPU, T0, T1, Category.ERROR, "no-colon"), "c")


def test_query_validation():
    from chtimeline_tui.queries import Category, FlamegraphParams, TraceType, flamegraph_query
    with pytest.raises(ValueError):
        flamegraph_query(FlamegraphParams(TraceType.CPU, T1, T0), "c")
    with pytest.raises(ValueError):
        flamegraph_query(FlamegraphParams(TraceType.CPU, T0, T1, Category.QUERY_HASH, ""), "c")
    sql = flamegraph_query(FlamegraphParams(TraceType.CPU, T0, T1, Category.HOST, "it's"), "c")
    assert "hostName() = 'it\\'s'" in sql


def test_cli_query_command(capsys):
    from chtimeline_tui.cli import main
    rc = main(["query", "--trace-type", "MemorySample", "--category", "normalized_query_hash",
               "--value", "42", "--from", "2025-03-01T10:00", "--to", "2025-03-01T11:00",
               "--cluster", "prod"])
    out = capsys.readouterr().out
    assert rc == 0
    assert "normalized_query_hash = '42'" in out
    assert "trace_type = 'MemorySample'" in out

    rc = main(["query", "--trace-type", "CPU", "--category", "errors", "--value", "bad",
               "--from", "2025-03-01T10:00", "--to", "2025-03-01T11:00"])
    assert rc == 2
    assert "CODE:HASH" in capsys.readouterr().err


def test_cli_loaders(tmp_path):
    from chtimeline_tui.cli import load_folded, load_tsv
    folded = tmp_path / "stacks.folded"
    folded.write_text("a;b 3\na;c 4\nbroken\n")
    assert load_folded(str(folded)).total_count == 7

    rows = tmp_path / "rows.tsv"
    rows.write_text("3\tCPU;a\n9\tCPU;b\n")
    tree = load_tsv(str(rows))
    assert tree.total_count == 12
    assert tree.max_depth == 2


def test_stack_detail_lines():
    from chtimeline_tui.stacktrace import format_stack_with_numbers, stack_detail_lines
    assert format_stack_with_numbers(["a", "b"]) == "1. a\n2. b"
    lines = stack_detail_lines(["main", "query"], 25, 100)
    assert lines[0] == "Selected stacktrace count: 25 (25.00% of total)"
    assert lines[-2] == "1. main"
    assert lines[-1] == "2. query  ← SELECTED"
    assert "0.00%" in stack_detail_lines([], 0, 0)[0]


def test_settings_from_env():
    from chtimeline_tui.config import Settings
    s = Settings.from_env({"CHTIMELINE_DIRECTION": "bottom-up",
                           "CHTIMELINE_DOUBLE_CLICK_MS": "300",
                           "CHTIMELINE_LOG_LEVEL": "debug"})
    assert s.direction == "bottom-up"
    assert s.double_click_seconds == 0.3
    assert s.log_level == "DEBUG"
    assert s.override(direction=None, source_page="heatmap").source_page == "heatmap"
    assert s.override(direction="top-down").direction == "top-down"
    with pytest.raises(ValueError):
        Settings(direction="sideways")


def test_setup_logging_writes_file(tmp_path):
    from loguru import logger
    from chtimeline_tui.config import Settings
    from chtimeline_tui.logs import setup_logging
    log_file = tmp_path / "logs" / "chtimeline.log"
    setup_logging(Settings(log_file=str(log_file), log_level="DEBUG"))
    try:
        logger.info("hello from test")
        logger.complete()
        assert "hello from test" in log_file.read_text()
    finally:
        logger.remove()


def test_render_flamegraph_static(capsys):
    """Piped output falls back to a rich rendering with a summary."""
    from chtimeline_tui.ingest import parse_folded
    from chtimeline_tui.tui import render_flamegraph
    tree = parse_folded(["main;query;read 30", "main;merge 10", "bg 5"])
    render_flamegraph(tree, title="Test graph", width=60)
    out = capsys.readouterr().out
    assert "Test graph" in out
    assert "main" in out and "query" in out
    assert "Summary" in out
    assert "45" in out

    render_flamegraph(parse_folded([]), title="Empty", width=60)
    assert "no data found" in capsys.readouterr().out


def test_bad_double_click_env_is_readable(monkeypatch, capsys):
    from chtimeline_tui.cli import main
    from chtimeline_tui.config import Settings
    with pytest.raises(ValueError, match="CHTIMELINE_DOUBLE_CLICK_MS must be an integer"):
        Settings.from_env({"CHTIMELINE_DOUBLE_CLICK_MS": "fast"})

    monkeypatch.setenv("CHTIMELINE_DOUBLE_CLICK_MS", "0.4s")
    assert main(["flame", "stacks.folded"]) == 2
    assert "CHTIMELINE_DOUBLE_CLICK_MS" in capsys.readouterr().err


def test_cli_flame_reads_stdin_up_front(tmp_path, monkeypatch, capsys):
    """Piped stacks are consumed before the viewer starts."""
    import io
    import os
    from loguru import logger
    from chtimeline_tui.cli import main

    monkeypatch.setenv("CHTIMELINE_LOG_FILE", str(tmp_path / "chtimeline.log"))
    stdin = io.StringIO("main;query 3\nmain;merge 1\n")
    monkeypatch.setattr("sys.stdin", stdin)
    monkeypatch.setattr(os, "isatty", lambda fd: False)
    try:
        rc = main(["flame", "-", "--title", "Piped"])
    finally:
        logger.remove()
    assert rc == 0
    assert stdin.read() == ""
    out = capsys.readouterr().out
    assert "Piped" in out
    assert "query" in out and "merge" in out


def test_viewer_needs_a_terminal_on_stdin(monkeypatch, capsys):
    """Without a keyboard on fd 0 the viewer falls back to static output."""
    import os
    from chtimeline_tui.ingest import parse_folded
    from chtimeline_tui.tui import run_flamegraph

    monkeypatch.setattr(os, "isatty", lambda fd: fd == 1)
    assert run_flamegraph(lambda: parse_folded(["a;b 2"]), title="Static") is None
    assert "Static" in capsys.readouterr().out
