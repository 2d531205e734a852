"""
navigation.py - Focus tracking and hit-testing for the flame-graph view.

Navigator owns the current tree, the layout of the last draw and a single
focused frame. Every handler runs synchronously on the UI thread and is at
worst linear in the number of rendered frames.

Keys map onto moves like this:
    ←/→   previous/next frame on the same row (may cross subtrees)
    ↑     parent frame
    ↓     first child under the focused frame
    Enter selection callback
    Esc   page-switch callback
"""
import time
from typing import Callable, Optional

from .events import FlameEvents, resolve_back_target
from .frames import FrameTree
from .layout import BOTTOM_UP, TOP_DOWN, Layout, RenderedFrame, layout_tree

DOUBLE_CLICK_SECONDS = 0.5


class Navigator:
    """Interactive state of one flame-graph view."""

    def __init__(self, events: Optional[FlameEvents] = None,
                 source_page: str = "main",
                 direction: str = TOP_DOWN,
                 double_click: float = DOUBLE_CLICK_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.events = events
        self.source_page = source_page
        self.direction = direction
        self.double_click = double_click
        self.clock = clock
        self.tree: Optional[FrameTree] = None
        self.layout = Layout(direction=direction)
        self.focus: Optional[int] = None
        self._last_click: Optional[tuple[float, int]] = None

    # ── Tree and layout ──

    def replace_tree(self, tree: Optional[FrameTree]):
        """Install a freshly built tree; focus goes back to its first frame."""
        self.tree = tree
        self.layout = Layout(direction=self.direction)
        self._last_click = None
        if tree is not None and not tree.empty:
            self.focus = tree.root.children[0]
        else:
            self.focus = None

    def relayout(self, width: int, height: int, x: int = 0, y: int = 0) -> Layout:
        """
        Rebuild the layout for a drawing surface at (x, y) of width x height.

        Rows that fall outside the surface are dropped, so focus can only
        land on frames that are drawn.
        """
        base_y = y if self.direction == TOP_DOWN else y + height - 1
        self.layout = layout_tree(self.tree, width, base_y, self.direction, x).clip(y, y + height)
        if self.layout.frames and self.layout.get(self.focus) is None:
            self.focus = self.layout.frames[0].frame
        return self.layout

    def set_direction(self, direction: str):
        if direction not in (TOP_DOWN, BOTTOM_UP):
            raise ValueError(f"unknown direction {direction!r}")
        self.direction = direction

    @property
    def active(self) -> bool:
        return self.tree is not None and not self.tree.empty and len(self.layout) > 0

    @property
    def focused(self) -> Optional[RenderedFrame]:
        if not self.active:
            return None
        return self.layout.get(self.focus)

    def _focus_on(self, rec: Optional[RenderedFrame]) -> bool:
        if rec is None:
            return False
        self.focus = rec.frame
        return True

    # ── Keyboard moves ──

    def _row_neighbour(self, delta: int) -> Optional[RenderedFrame]:
        cur = self.focused
        if cur is None:
            return None
        row = self.layout.row(cur.y)
        pos = row.index(cur) + delta
        return row[pos] if 0 <= pos < len(row) else None

    def move_right(self) -> bool:
        return self._focus_on(self._row_neighbour(1))

    def move_left(self) -> bool:
        return self._focus_on(self._row_neighbour(-1))

    def move_up(self) -> bool:
        cur = self.focused
        if cur is None:
            return False
        parent = self.tree[cur.frame].parent
        return self._focus_on(self.layout.get(parent))

    def move_down(self) -> bool:
        """
        Focus a frame one level deeper whose span overlaps the focused one.

        Tree children win over frames that only overlap because a sibling
        overflowed; ties go to the leftmost, then the first drawn.
        """
        cur = self.focused
        if cur is None:
            return False
        step = 1 if self.direction == TOP_DOWN else -1
        below = [r for r in self.layout.row(cur.y + step) if r.overlaps(cur)]
        if not below:
            return False
        best = min(below, key=lambda r: (self.tree[r.frame].parent != cur.frame,
                                         r.x, r.index))
        return self._focus_on(best)

    # ── Selection and back-navigation ──

    def current_stack(self) -> tuple[list[str], int]:
        cur = self.focused
        if cur is None:
            return [], 0
        return self.tree.stack_of(cur.frame), self.tree[cur.frame].count

    def activate(self) -> bool:
        if self.focused is None or self.events is None:
            return False
        stack, count = self.current_stack()
        self.events.on_select(stack, count)
        return True

    def back(self) -> bool:
        target = resolve_back_target(self.source_page)
        if target is None or self.events is None:
            return False
        self.events.switch_page(target)
        return True

    # ── Pointer ──

    def frame_at(self, x: int, y: int) -> Optional[RenderedFrame]:
        """Record drawn on top at (x, y): later records paint over earlier ones."""
        if not self.active:
            return None
        for rec in reversed(self.layout.row(y)):
            if rec.contains(x, y):
                return rec
        return None

    def click(self, x: int, y: int) -> bool:
        """
        Focus the frame under the pointer.

        A second click on the same frame inside the double-click window also
        fires the selection callback. Returns True when that happened.
        """
        rec = self.frame_at(x, y)
        if rec is None:
            return False
        now = self.clock()
        self._focus_on(rec)
        last = self._last_click
        if last is not None and last[1] == rec.frame and now - last[0] <= self.double_click:
            self._last_click = None
            return self.activate()
        self._last_click = (now, rec.frame)
        return False
