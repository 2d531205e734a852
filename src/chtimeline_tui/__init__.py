"""
chtimeline_tui - Terminal flame graphs for ClickHouse trace_log samples.

Modules:
    frames.py      - Aggregated call tree (arena of frames)
    ingest.py      - Folded-text and query-row ingestion
    layout.py      - Proportional layout on a character grid
    colors.py      - Heat colors
    navigation.py  - Focus, keyboard moves, hit-testing
    events.py      - Selection / page-switch callbacks
    worker.py      - Background ingestion with tree handoff
    tui.py         - Curses viewer and rich fallback
"""
