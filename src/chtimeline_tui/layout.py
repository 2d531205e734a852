"""
layout.py - Place flame-graph frames on a character grid.

Each frame gets one row and a horizontal span proportional to its count
within its parent's span. Widths are floored and clamped to at least one
column, so many small siblings can overflow their parent: every frame stays
visible and clickable even when its true share rounds to zero.
"""
from dataclasses import dataclass, field
from typing import Optional

from .colors import RGB, heat_color
from .frames import ROOT, FrameTree

TOP_DOWN = "top-down"
BOTTOM_UP = "bottom-up"
DIRECTIONS = (TOP_DOWN, BOTTOM_UP)


@dataclass
class RenderedFrame:
    """Screen rectangle of one frame in one layout pass (always 1 row high)."""
    frame: int
    x: int
    y: int
    width: int
    index: int
    depth: int
    color: RGB

    @property
    def end(self) -> int:
        return self.x + self.width

    def contains(self, x: int, y: int) -> bool:
        return y == self.y and self.x <= x < self.end

    def overlaps(self, other: "RenderedFrame") -> bool:
        return self.x < other.end and other.x < self.end


@dataclass
class Layout:
    """
    Result of one layout pass.

    `frames` is in render order (depth-first, children left to right);
    `by_frame` is the reverse index from frame handle to its record and
    `by_row` groups records per screen row, each list in render order.
    """
    frames: list[RenderedFrame] = field(default_factory=list)
    by_frame: dict[int, RenderedFrame] = field(default_factory=dict)
    by_row: dict[int, list[RenderedFrame]] = field(default_factory=dict)
    direction: str = TOP_DOWN

    def __len__(self) -> int:
        return len(self.frames)

    def get(self, handle: int) -> Optional[RenderedFrame]:
        return self.by_frame.get(handle)

    def row(self, y: int) -> list[RenderedFrame]:
        return self.by_row.get(y, [])

    def clip(self, top: int, bottom: int) -> "Layout":
        """Copy keeping only records on rows top <= y < bottom."""
        out = Layout(direction=self.direction)
        for rec in self.frames:
            if top <= rec.y < bottom:
                out._add(rec)
        return out

    def _add(self, rec: RenderedFrame):
        self.frames.append(rec)
        self.by_frame[rec.frame] = rec
        self.by_row.setdefault(rec.y, []).append(rec)


def layout_tree(tree: FrameTree, width: int, y: int,
                direction: str = TOP_DOWN, x: int = 0) -> Layout:
    """
    Lay out every non-root frame of `tree`.

    `y` is the row of the root's children; deeper frames go to y + depth
    (top-down) or y - depth (bottom-up).
    """
    if direction not in DIRECTIONS:
        raise ValueError(f"unknown direction {direction!r}")
    out = Layout(direction=direction)
    if tree is None or tree.max_depth == 0 or width <= 0:
        return out
    step = 1 if direction == TOP_DOWN else -1
    _place(tree, ROOT, x, y, width, 0, step, out)
    return out


def _place(tree: FrameTree, handle: int, x: int, y: int, width: int,
           depth: int, step: int, out: Layout):
    children = tree[handle].children
    if not children:
        return
    total = sum(tree[c].count for c in children)
    cur_x = x
    for c in children:
        child = tree[c]
        if total > 0:
            child_w = max(1, width * child.count // total)
            ratio = child.count / total
        else:
            child_w, ratio = 1, 0.0
        rec = RenderedFrame(frame=c, x=cur_x, y=y + step * depth, width=child_w,
                            index=len(out.frames), depth=depth,
                            color=heat_color(child.count, tree.max_count, ratio))
        out._add(rec)
        _place(tree, c, cur_x, y, child_w, depth + 1, step, out)
        cur_x += child_w
