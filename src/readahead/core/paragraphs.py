from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional

from ..ingestion.tree import DocumentTree, TreeBoundary
from ..locations.fragment import FragmentLocation
from .leaves import Leaf, enumerate_leaves
from .ranges import TreeRange

DEFAULT_MIN_LENGTH = 50


class BlockKind(Enum):
    """Element kinds that close a paragraph."""
    P = "p"
    DIV = "div"
    H1 = "h1"
    H2 = "h2"
    H3 = "h3"
    H4 = "h4"
    H5 = "h5"
    H6 = "h6"
    LI = "li"
    BLOCKQUOTE = "blockquote"
    PRE = "pre"
    ARTICLE = "article"
    SECTION = "section"
    ASIDE = "aside"
    HEADER = "header"
    FOOTER = "footer"
    MAIN = "main"
    NAV = "nav"
    FIGURE = "figure"
    FIGCAPTION = "figcaption"
    DD = "dd"
    DT = "dt"

    @classmethod
    def for_tag(cls, tag: Optional[str]) -> Optional["BlockKind"]:
        if not tag:
            return None
        return _BLOCK_BY_TAG.get(tag.rsplit(":", 1)[-1])


_BLOCK_BY_TAG: Dict[str, BlockKind] = {k.value: k for k in BlockKind}


@dataclass(frozen=True)
class ParagraphUnit:
    text: str
    start_location: FragmentLocation
    end_location: FragmentLocation

    def __post_init__(self) -> None:
        if not self.text or not self.text.strip():
            raise ValueError("paragraph text must not be empty")

    @property
    def cfi_range(self) -> str:
        if self.start_location.is_range:
            return self.start_location.serialize()
        return FragmentLocation.span(self.start_location, self.end_location).serialize()

    def to_dict(self) -> Dict[str, str]:
        return {
            "text": self.text,
            "cfi_range": self.cfi_range,
            "start_cfi": self.start_location.serialize(),
            "end_cfi": self.end_location.serialize(),
        }


def find_block_ancestor(tree: DocumentTree, index: int) -> Optional[int]:
    for ancestor in tree.ancestors(index):
        node = tree.nodes[ancestor]
        if node.is_element and BlockKind.for_tag(node.tag) is not None:
            return ancestor
    return None


def range_text(tree_range: TreeRange) -> str:
    """Flattened text of a range, like DOM ``Range.toString()``."""
    tree = tree_range.tree
    parts: List[str] = []
    for index in tree.text_nodes(tree_range.common_ancestor):
        if tree_range.intersects(index):
            parts.append(tree_range.clipped_text(index))
    return "".join(parts)


def _paragraph_from_group(tree_range: TreeRange, leaves: List[Leaf]) -> Optional[ParagraphUnit]:
    tree = tree_range.tree
    pieces: List[str] = []
    first_offset = last_offset = 0
    for position, leaf in enumerate(leaves):
        lo = tree_range.start.offset if leaf.node == tree_range.start.node else 0
        hi = tree_range.end.offset if leaf.node == tree_range.end.node else len(leaf.text)
        pieces.append(leaf.text[lo:hi])
        if position == 0:
            first_offset = lo
        last_offset = hi

    text = "".join(pieces).strip()
    if not text:
        return None
    sub_range = tree_range.clip(
        TreeBoundary(leaves[0].node, first_offset),
        TreeBoundary(leaves[-1].node, last_offset),
    )
    return ParagraphUnit(
        text=text,
        start_location=FragmentLocation.from_boundary(tree, sub_range.start),
        end_location=FragmentLocation.from_boundary(tree, sub_range.end),
    )


def build_paragraphs(tree_range: TreeRange) -> List[ParagraphUnit]:
    """Group the text of a range into paragraph units, in document order.

    Leaves are grouped by their nearest block-level ancestor and clipped to the
    range. When no group survives but the range still holds text, the whole
    range becomes a single unit. Never raises.
    """
    try:
        leaves = list(enumerate_leaves(tree_range))
        if not leaves:
            return []

        tree = tree_range.tree
        groups: Dict[int, List[Leaf]] = {}
        for leaf in leaves:
            block = find_block_ancestor(tree, leaf.node)
            if block is None:
                continue
            groups.setdefault(block, []).append(leaf)

        paragraphs: List[ParagraphUnit] = []
        for block, members in groups.items():
            try:
                unit = _paragraph_from_group(tree_range, members)
            except (ValueError, IndexError, LookupError) as e:
                logging.warning("Skipping block %d (<%s>): %s", block, tree.nodes[block].tag, e)
                continue
            if unit is not None:
                paragraphs.append(unit)

        if not paragraphs:
            flat = range_text(tree_range).strip()
            if flat:
                whole = FragmentLocation.from_range(tree_range)
                logging.debug("No block structure in range; falling back to one unit (%d chars)", len(flat))
                paragraphs.append(ParagraphUnit(text=flat, start_location=whole, end_location=whole))
        return paragraphs
    except Exception as e:
        logging.error("Error getting paragraphs from range %r: %s", tree_range, e)
        return []


def filter_by_length(paragraphs: Iterable[ParagraphUnit], min_length: int = DEFAULT_MIN_LENGTH) -> List[ParagraphUnit]:
    if min_length < 0:
        raise ValueError("min_length must be >= 0")
    return [p for p in paragraphs if len(p.text) >= min_length]
