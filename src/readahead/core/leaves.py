from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator

from .ranges import TreeRange


@dataclass(frozen=True)
class Leaf:
    node: int
    text: str


class LeafSequence:
    """Text leaves intersecting a range, re-walked on every iteration."""

    def __init__(self, tree_range: TreeRange) -> None:
        self.range = tree_range

    def __iter__(self) -> Iterator[Leaf]:
        tree = self.range.tree
        for index in tree.text_nodes(self.range.common_ancestor):
            try:
                if not self.range.intersects(index):
                    continue
            except Exception as e:
                logging.debug("Rejecting leaf %d: %s", index, e)
                continue
            text = tree.nodes[index].text
            if not text.strip():
                continue
            yield Leaf(node=index, text=text)

    def __bool__(self) -> bool:
        return next(iter(self), None) is not None


def enumerate_leaves(tree_range: TreeRange) -> LeafSequence:
    return LeafSequence(tree_range)
