"""
tui.py - Interactive flame-graph viewer (curses).

Draws the flame graph built by an IngestWorker and routes keyboard and mouse
input to the Navigator. Selecting a frame opens a stack-detail page; Esc
there comes back to the flame graph, Esc on the flame graph leaves the
viewer towards the page that opened it.

Keybindings:
    ←/→          Previous / next frame on the same row
    ↑/↓          Parent / child frame
    Enter        Show stack trace of the focused frame
    Click        Focus frame (double-click: show stack trace)
    b            Toggle top-down / bottom-up
    R            Reload data
    Esc          Back
    q            Quit
"""
import curses
import os
from typing import Optional

from loguru import logger

from .colors import NEUTRAL_COLOR, RGB, is_hot, to_hex, to_xterm256
from .config import Settings
from .events import FLAMEGRAPH_PAGE, STACKTRACE_PAGE, resolve_back_target
from .frames import FrameTree
from .layout import BOTTOM_UP, TOP_DOWN, layout_tree
from .navigation import Navigator
from .stacktrace import stack_detail_lines
from .worker import IngestFailed, IngestWorker, Loader, ReplaceTree

_HEAT_PAIR_BASE = 20


def _fmt_count(n: int) -> str:
    if n >= 1_000_000:
        return f"{n / 1e6:.1f}M"
    if n >= 10_000:
        return f"{n / 1e3:.1f}k"
    return str(n)


def _label(name: str, width: int) -> str:
    """Name centered in `width` cells, truncated when it doesn't fit."""
    if len(name) >= width:
        return name[:width]
    pad = (width - len(name)) // 2
    return (" " * pad + name).ljust(width)


class FlameGraphTUI:
    """Curses host for one flame-graph view and its stack-detail page."""

    def __init__(self, loader: Loader, title: str = "Flamegraph",
                 settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self.title = title
        self.worker = IngestWorker(loader)
        self.nav = Navigator(events=self, source_page=self.settings.source_page,
                             direction=self.settings.direction,
                             double_click=self.settings.double_click_seconds)
        self.page = FLAMEGRAPH_PAGE
        self.loading = False
        self.status_msg = ''
        self.exit_target: Optional[str] = None
        self.detail_lines: list[str] = []
        self.detail_scroll = 0
        self._pairs: dict[int, int] = {}

    # ── FlameEvents ──

    def on_select(self, stack: list[str], count: int):
        total = self.nav.tree.total_count if self.nav.tree else 0
        self.detail_lines = stack_detail_lines(stack, count, total)
        self.detail_scroll = 0
        self.page = STACKTRACE_PAGE
        logger.debug(f"Selected {' > '.join(stack[-3:])} ({count})")

    def switch_page(self, target: str):
        if target == FLAMEGRAPH_PAGE:
            self.page = FLAMEGRAPH_PAGE
        else:
            logger.info(f"Leaving flame graph for {target}")
            self.exit_target = target

    # ── Data ──

    def reload(self):
        self.loading = True
        self.status_msg = 'Loading…'
        self.worker.start()

    def _apply_worker_result(self):
        msg = self.worker.poll()
        if msg is None:
            return
        self.loading = False
        if isinstance(msg, ReplaceTree):
            self.nav.replace_tree(msg.tree)
            tree = msg.tree
            self.status_msg = (f'{_fmt_count(tree.total_count)} samples, '
                               f'{len(tree) - 1} frames' if not tree.empty
                               else 'No data found for the selected parameters')
        elif isinstance(msg, IngestFailed):
            # previous tree (if any) stays on screen
            self.status_msg = f'Error building flamegraph: {msg.error}'

    # ── Colors ──

    def _init_colors(self):
        curses.use_default_colors()
        curses.init_pair(1, curses.COLOR_CYAN, -1)     # title
        curses.init_pair(2, curses.COLOR_YELLOW, -1)   # status / highlight
        curses.init_pair(3, curses.COLOR_RED, -1)      # errors
        curses.init_pair(4, curses.COLOR_BLACK, curses.COLOR_WHITE)  # focus

    def _heat_attr(self, rgb: RGB) -> int:
        if not curses.has_colors():
            return curses.A_REVERSE
        if curses.COLORS >= 256:
            bg = to_xterm256(rgb)
        elif rgb == NEUTRAL_COLOR:
            bg = curses.COLOR_WHITE
        else:
            bg = curses.COLOR_RED if is_hot(rgb) else curses.COLOR_YELLOW
        pair = self._pairs.get(bg)
        if pair is None:
            pair = _HEAT_PAIR_BASE + len(self._pairs)
            if pair >= curses.COLOR_PAIRS:
                return curses.A_REVERSE
            curses.init_pair(pair, curses.COLOR_BLACK, bg)
            self._pairs[bg] = pair
        return curses.color_pair(pair)

    # ── Main loop ──

    def run(self, stdscr):
        curses.curs_set(0)
        if curses.has_colors():
            self._init_colors()
        curses.mousemask(curses.ALL_MOUSE_EVENTS)
        curses.mouseinterval(0)
        stdscr.timeout(self.settings.poll_ms)
        if self.nav.tree is None:
            self.reload()

        try:
            self._main_loop(stdscr)
        except KeyboardInterrupt:
            pass  # Ctrl+C exits cleanly

    def _main_loop(self, stdscr):
        while self.exit_target is None:
            self._apply_worker_result()
            stdscr.erase()
            height, width = stdscr.getmaxyx()
            if self.page == STACKTRACE_PAGE:
                self._draw_stacktrace(stdscr, height, width)
            else:
                self._draw_flamegraph(stdscr, height, width)
            stdscr.refresh()

            key = stdscr.getch()
            if key == -1:
                continue
            if key == ord('q'):
                break
            if self.page == STACKTRACE_PAGE:
                self._handle_stacktrace_key(key, height)
            else:
                self._handle_flamegraph_key(key)

    def _handle_flamegraph_key(self, key: int):
        nav = self.nav
        if key == 27:  # Esc
            nav.back()
        elif key == curses.KEY_RIGHT:
            nav.move_right()
        elif key == curses.KEY_LEFT:
            nav.move_left()
        elif key == curses.KEY_UP:
            nav.move_up()
        elif key == curses.KEY_DOWN:
            nav.move_down()
        elif key in (10, 13, curses.KEY_ENTER):
            nav.activate()
        elif key == curses.KEY_MOUSE:
            try:
                _, mx, my, _, bstate = curses.getmouse()
            except curses.error:
                return
            if bstate & (curses.BUTTON1_PRESSED | curses.BUTTON1_CLICKED):
                nav.click(mx, my)
        elif key == ord('b'):
            nav.set_direction(BOTTOM_UP if nav.direction == TOP_DOWN else TOP_DOWN)
            self.status_msg = f'Direction: {nav.direction}'
        elif key == ord('R'):
            self.reload()

    def _handle_stacktrace_key(self, key: int, height: int):
        page = max(1, height - 6)
        if key == 27:  # Esc
            target = resolve_back_target(STACKTRACE_PAGE)
            if target:
                self.switch_page(target)
        elif key == curses.KEY_UP:
            self.detail_scroll = max(0, self.detail_scroll - 1)
        elif key == curses.KEY_DOWN:
            self.detail_scroll = min(max(0, len(self.detail_lines) - page),
                                     self.detail_scroll + 1)
        elif key == curses.KEY_PPAGE:
            self.detail_scroll = max(0, self.detail_scroll - page)
        elif key == curses.KEY_NPAGE:
            self.detail_scroll = min(max(0, len(self.detail_lines) - page),
                                     self.detail_scroll + page)
        elif key == curses.KEY_HOME:
            self.detail_scroll = 0

    # ── Drawing ──

    def _put(self, stdscr, y: int, x: int, text: str, attr: int = 0):
        try:
            stdscr.addnstr(y, x, text, max(0, stdscr.getmaxyx()[1] - x - 1), attr)
        except curses.error:
            pass

    def _draw_flamegraph(self, stdscr, height: int, width: int):
        nav = self.nav
        self._put(stdscr, 0, 0, f" {self.title}  [{nav.direction}]",
                  curses.A_BOLD | curses.color_pair(1))
        status_attr = curses.color_pair(3) if self.status_msg.startswith('Error') else curses.color_pair(2)
        self._put(stdscr, 1, 0, f" {self.status_msg}", status_attr)
        self._put(stdscr, height - 1, 0,
                  " ←→↑↓:nav  ⏎/dbl-click:stack  b:direction  R:reload  Esc:back  q:quit",
                  curses.A_DIM)

        top, area_h = 2, max(0, height - 5)
        if area_h == 0 or width < 2:
            return
        layout = nav.relayout(width - 1, area_h, 0, top)
        if not nav.active:
            msg = 'Preparing flamegraph data, please wait...' if self.loading else '(no frames)'
            self._put(stdscr, top + 1, 2, msg, curses.A_DIM)
            return

        for rec in layout.frames:
            if not top <= rec.y < top + area_h or rec.x >= width - 1:
                continue
            name = nav.tree[rec.frame].name
            self._put(stdscr, rec.y, rec.x, _label(name, rec.width), self._heat_attr(rec.color))

        cur = nav.focused
        if cur is not None:
            frame = nav.tree[cur.frame]
            if top <= cur.y < top + area_h:
                self._put(stdscr, cur.y, cur.x, _label(frame.name, cur.width),
                          curses.color_pair(4) | curses.A_BOLD)
            total = nav.tree.total_count
            pct = 100.0 * frame.count / total if total else 0.0
            self._put(stdscr, height - 2, 0,
                      f" {frame.name}  │ samples: {frame.count:,} ({pct:.2f}%)  │ depth {cur.depth}",
                      curses.A_BOLD | curses.color_pair(1))

    def _draw_stacktrace(self, stdscr, height: int, width: int):
        self._put(stdscr, 0, 0, " Stack Trace", curses.A_BOLD | curses.color_pair(1))
        view_h = max(1, height - 3)
        lines = self.detail_lines[self.detail_scroll:self.detail_scroll + view_h]
        for i, line in enumerate(lines):
            attr = curses.color_pair(2) | curses.A_BOLD if line.endswith('SELECTED') else 0
            self._put(stdscr, i + 1, 1, line, attr)
        self._put(stdscr, height - 1, 0,
                  " ↑↓/PgUp/PgDn: scroll  Home: top  Esc: back to flamegraph", curses.A_DIM)


def render_flamegraph(tree: FrameTree, title: str = "Flamegraph",
                      direction: str = TOP_DOWN, width: Optional[int] = None):
    """Non-interactive render (fallback for piped output)."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.table import Table
    from rich.text import Text

    console = Console(width=width)
    cols = max(console.width - 1, 10)
    if tree.empty:
        console.print(f"[bold]{title}[/bold]: no data found")
        return

    rows = tree.max_depth
    y0 = 0 if direction == TOP_DOWN else rows - 1
    layout = layout_tree(tree, cols, y0, direction)

    console.print()
    console.print(f"[bold]{title}[/bold]")
    for y in range(rows):
        line = Text()
        cursor = 0
        for rec in layout.row(y):
            if rec.end <= cursor or rec.x >= cols:
                continue
            if rec.x > cursor:
                line.append(" " * (rec.x - cursor))
            start = max(rec.x, cursor)
            end = min(rec.end, cols)
            label = _label(tree[rec.frame].name, rec.width)[start - rec.x:end - rec.x]
            line.append(label, style=f"black on {to_hex(rec.color)}")
            cursor = end
        console.print(line)
    console.print()

    # hottest leaves, i.e. frames with no children
    leaves = sorted((f for f, _ in tree.walk() if not f.children), key=lambda f: -f.count)[:5]
    summary = Table.grid(padding=(0, 2))
    summary.add_column(style="bold")
    summary.add_column()
    summary.add_row("Samples", f"{tree.total_count:,}")
    summary.add_row("Frames", str(len(tree) - 1))
    summary.add_row("Max depth", str(tree.max_depth))
    if leaves:
        summary.add_row("", "")
        summary.add_row("[bold]Top leaves", "[bold]Samples")
        for f in leaves:
            pct = 100.0 * f.count / tree.total_count if tree.total_count else 0
            short = f.name[:60] + "…" if len(f.name) > 60 else f.name
            summary.add_row(f"  {short}", f"{f.count:,} ({pct:.0f}%)")
    console.print(Panel(summary, title="Summary", border_style="dim"))
    console.print()


def run_flamegraph(loader: Loader, title: str = "Flamegraph",
                   settings: Optional[Settings] = None) -> Optional[str]:
    """
    Main entry point: load data, launch the interactive viewer.

    Falls back to static rich rendering unless both stdin and stdout are
    terminals (curses reads keys from fd 0).
    Returns the page the user asked to go back to, if any.
    """
    settings = settings or Settings()
    if not (os.isatty(0) and os.isatty(1)):
        render_flamegraph(loader(), title=title, direction=settings.direction)
        return None

    os.environ.setdefault('ESCDELAY', '25')
    tui = FlameGraphTUI(loader, title=title, settings=settings)
    curses.wrapper(tui.run)
    return tui.exit_target
