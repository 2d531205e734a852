"""
frames.py - Aggregated call tree for flame graphs.

Frames live in a flat arena owned by the FrameTree and refer to each other by
integer handle. Children are owned handles in first-appearance order (call
order, never sorted by size); the parent handle is a back-reference used only
for upward navigation.

    tree = FrameTree()
    tree.add_stack(["main", "query", "read"], 10)
    tree.add_stack(["main", "merge"], 5)
    tree.finalize()
"""
from dataclasses import dataclass, field
from typing import Iterator, Optional

ROOT = 0


@dataclass
class Frame:
    """One label at one depth of the aggregated stack tree."""
    index: int
    name: str
    count: int = 0
    parent: Optional[int] = None
    children: list[int] = field(default_factory=list)


class FrameTree:
    """Arena of frames rooted at a synthetic "root" frame."""

    def __init__(self):
        self.frames: list[Frame] = [Frame(index=ROOT, name="root")]
        self.max_depth = 0
        self.max_count = 0

    def __len__(self) -> int:
        return len(self.frames)

    def __getitem__(self, handle: int) -> Frame:
        return self.frames[handle]

    @property
    def root(self) -> Frame:
        return self.frames[ROOT]

    @property
    def total_count(self) -> int:
        return self.frames[ROOT].count

    @property
    def empty(self) -> bool:
        return self.max_depth == 0 or not self.frames[ROOT].children

    def _child(self, parent: Frame, name: str) -> Frame:
        for handle in parent.children:
            child = self.frames[handle]
            if child.name == name:
                return child
        child = Frame(index=len(self.frames), name=name, parent=parent.index)
        self.frames.append(child)
        parent.children.append(child.index)
        return child

    def add_stack(self, stack: list[str], weight: int):
        """
        Add one weighted sample, root-first.

        Each label along the path gets `weight` added to its frame; a label
        already present among the current frame's children merges into it.
        """
        if not stack:
            return
        if weight < 0:
            raise ValueError(f"negative sample weight: {weight}")
        node = self.frames[ROOT]
        for name in stack:
            node = self._child(node, name)
            node.count += weight
        if len(stack) > self.max_depth:
            self.max_depth = len(stack)

    def finalize(self):
        """Recompute the root count and max_count after an ingestion batch."""
        root = self.frames[ROOT]
        root.count = sum(self.frames[h].count for h in root.children)
        self.max_count = max((f.count for f, _ in self.walk()), default=0)

    def walk(self, handle: int = ROOT, depth: int = 0) -> Iterator[tuple[Frame, int]]:
        """Depth-first (frame, depth) pairs below `handle`, excluding it."""
        for child in self.frames[handle].children:
            yield self.frames[child], depth
            yield from self.walk(child, depth + 1)

    def stack_of(self, handle: int) -> list[str]:
        """Labels from the root (exclusive) down to `handle`."""
        names = []
        frame = self.frames[handle]
        while frame.parent is not None:
            names.append(frame.name)
            frame = self.frames[frame.parent]
        names.reverse()
        return names

    def depth_of(self, handle: int) -> int:
        depth = -1
        frame = self.frames[handle]
        while frame.parent is not None:
            depth += 1
            frame = self.frames[frame.parent]
        return depth
