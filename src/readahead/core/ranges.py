from __future__ import annotations

from typing import Tuple

from ..ingestion.tree import DocumentTree, TreeBoundary


class TreeRange:
    """Two boundaries over a DocumentTree, always in document order."""

    def __init__(self, tree: DocumentTree, start: TreeBoundary, end: TreeBoundary) -> None:
        if tree.position_key(start) > tree.position_key(end):
            raise ValueError("range start sorts after its end; use TreeRange.ordered()")
        self.tree = tree
        self.start = start
        self.end = end

    @classmethod
    def ordered(cls, tree: DocumentTree, a: TreeBoundary, b: TreeBoundary) -> Tuple["TreeRange", bool]:
        """Build a range from two boundaries in any order; the flag tells whether they were swapped."""
        if tree.position_key(a) > tree.position_key(b):
            return cls(tree, b, a), True
        return cls(tree, a, b), False

    def __repr__(self) -> str:
        return (
            f"TreeRange(unit={self.tree.unit_index}, "
            f"start=({self.start.node}, {self.start.offset}), end=({self.end.node}, {self.end.offset}))"
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TreeRange):
            return NotImplemented
        return self.tree is other.tree and self.start == other.start and self.end == other.end

    def __hash__(self) -> int:
        return hash((id(self.tree), self.start, self.end))

    @property
    def common_ancestor(self) -> int:
        return self.tree.common_ancestor(self.start.node, self.end.node)

    def intersects(self, index: int) -> bool:
        """DOM ``Range.intersectsNode``: the node overlaps or touches the range."""
        node = self.tree.node(index)
        if node.parent is None:
            return True
        before = (index, -1)
        after = (node.last_descendant, float("inf"))
        return before < self.tree.position_key(self.end) and after > self.tree.position_key(self.start)

    def clip(self, start: TreeBoundary, end: TreeBoundary) -> "TreeRange":
        """Sub-range between two boundaries that must lie inside this range."""
        lower, upper = self.tree.position_key(self.start), self.tree.position_key(self.end)
        for b in (start, end):
            key = self.tree.position_key(b)
            if key < lower or key > upper:
                raise ValueError(f"boundary ({b.node}, {b.offset}) lies outside {self!r}")
        return TreeRange(self.tree, start, end)

    def clipped_text(self, index: int) -> str:
        """Text of a text node limited to the part inside this range."""
        text = self.tree.node(index).text
        lo = self.start.offset if index == self.start.node else 0
        hi = self.end.offset if index == self.end.node else len(text)
        return text[lo:hi]
