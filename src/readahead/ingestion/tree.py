from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import Comment, Declaration, Doctype, ProcessingInstruction


class NodeKind(Enum):
    DOCUMENT = "document"
    ELEMENT = "element"
    TEXT = "text"


# NavigableString subclasses that never carry readable text
_SKIPPED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)


@dataclass
class Node:
    index: int
    kind: NodeKind
    parent: Optional[int]
    tag: Optional[str] = None
    text: str = ""
    children: List[int] = field(default_factory=list)
    last_descendant: int = -1

    @property
    def is_text(self) -> bool:
        return self.kind is NodeKind.TEXT

    @property
    def is_element(self) -> bool:
        return self.kind is NodeKind.ELEMENT


@dataclass(frozen=True)
class TreeBoundary:
    """A (node, offset) point. Offsets count characters in text nodes and children in elements."""
    node: int
    offset: int


class DocumentTree:
    """Arena of nodes for one document unit.

    Node indices follow document order, so a subtree is the contiguous slice
    ``[index, last_descendant]`` and no traversal needs recursion.
    """

    def __init__(self, nodes: List[Node], unit_index: int = 0, href: Optional[str] = None) -> None:
        self.nodes = nodes
        self.unit_index = unit_index
        self.href = href

    def __len__(self) -> int:
        return len(self.nodes)

    def __repr__(self) -> str:
        return f"DocumentTree(unit_index={self.unit_index}, nodes={len(self.nodes)}, href={self.href!r})"

    def node(self, index: int) -> Node:
        if index < 0 or index >= len(self.nodes):
            raise IndexError(f"node {index} is not part of this tree")
        return self.nodes[index]

    @property
    def root_element(self) -> int:
        for child in self.nodes[0].children:
            if self.nodes[child].is_element:
                return child
        raise LookupError("document has no root element")

    def find_first(self, tag: str) -> Optional[int]:
        for n in self.nodes:
            if n.is_element and n.tag == tag:
                return n.index
        return None

    @property
    def body(self) -> int:
        found = self.find_first("body")
        return found if found is not None else self.root_element

    def ancestors(self, index: int, include_self: bool = False) -> Iterator[int]:
        current = index if include_self else self.node(index).parent
        while current is not None:
            yield current
            current = self.nodes[current].parent

    def subtree(self, index: int) -> range:
        n = self.node(index)
        return range(index, n.last_descendant + 1)

    def text_nodes(self, index: int = 0) -> Iterator[int]:
        for i in self.subtree(index):
            if self.nodes[i].is_text:
                yield i

    def contains(self, ancestor: int, index: int) -> bool:
        return ancestor <= index <= self.node(ancestor).last_descendant

    def common_ancestor(self, a: int, b: int) -> int:
        if a > b:
            a, b = b, a
        # a precedes b, so the first ancestor-or-self of a that spans b wins
        for candidate in self.ancestors(a, include_self=True):
            if self.contains(candidate, b):
                return candidate
        return 0

    def text_content(self, index: int) -> str:
        return "".join(self.nodes[i].text for i in self.text_nodes(index))

    def position_key(self, boundary: TreeBoundary) -> Tuple[int, float]:
        """Sortable key of a boundary in document order."""
        n = self.node(boundary.node)
        if n.is_text:
            if boundary.offset < 0 or boundary.offset > len(n.text):
                raise ValueError(f"offset {boundary.offset} outside text node {n.index}")
            return (n.index, boundary.offset)
        if boundary.offset < 0 or boundary.offset > len(n.children):
            raise ValueError(f"offset {boundary.offset} outside element {n.index}")
        if boundary.offset < len(n.children):
            return (n.children[boundary.offset], -1)
        if n.children:
            return (n.last_descendant, math.inf)
        # empty element: the only position sits right after its start
        return (n.index, math.inf)

    def step_of(self, index: int) -> int:
        """Location step of a node inside its parent (even for elements, odd for text)."""
        n = self.node(index)
        if n.parent is None:
            raise ValueError("the document node has no step")
        elements_before = 0
        for sibling in self.nodes[n.parent].children:
            if sibling == index:
                break
            if self.nodes[sibling].is_element:
                elements_before += 1
        if n.is_element:
            return 2 * (elements_before + 1)
        return 2 * elements_before + 1

    def path_of(self, index: int) -> Tuple[int, ...]:
        root = self.root_element
        if index == root:
            return ()
        steps: List[int] = []
        current = index
        while current != root:
            if current == 0 or self.nodes[current].parent is None:
                raise ValueError(f"node {index} is not below the root element")
            steps.append(self.step_of(current))
            current = self.nodes[current].parent
        steps.reverse()
        return tuple(steps)

    def child_at_step(self, index: int, step: int) -> Optional[int]:
        if step <= 0:
            return None
        n = self.node(index)
        elements_seen = 0
        for child in n.children:
            c = self.nodes[child]
            if c.is_element:
                elements_seen += 1
                if step % 2 == 0 and elements_seen == step // 2:
                    return child
            elif step % 2 == 1 and elements_seen == (step - 1) // 2:
                return child
        return None


def build_tree(markup: str, unit_index: int = 0, href: Optional[str] = None) -> DocumentTree:
    """Parse (X)HTML markup into a DocumentTree."""
    soup = BeautifulSoup(markup, "html.parser")
    top_level = [c for c in soup.contents if _keeps(c)]
    elements = [c for c in top_level if isinstance(c, Tag)]
    wrap = not (len(elements) == 1 and all(isinstance(c, Tag) or not c.strip() for c in top_level))

    nodes: List[Node] = [Node(index=0, kind=NodeKind.DOCUMENT, parent=None)]
    stack: List[Tuple[object, int]] = []
    if wrap:
        nodes.append(Node(index=1, kind=NodeKind.ELEMENT, parent=0, tag="html"))
        nodes[0].children.append(1)
        stack.extend((c, 1) for c in reversed(top_level))
    else:
        stack.append((elements[0], 0))

    while stack:
        source, parent = stack.pop()
        siblings = nodes[parent].children
        if isinstance(source, Tag):
            index = len(nodes)
            nodes.append(Node(index=index, kind=NodeKind.ELEMENT, parent=parent, tag=source.name.lower()))
            siblings.append(index)
            stack.extend((c, index) for c in reversed(source.contents) if _keeps(c))
            continue
        text = str(source)
        if siblings and nodes[siblings[-1]].is_text:
            nodes[siblings[-1]].text += text
            continue
        index = len(nodes)
        nodes.append(Node(index=index, kind=NodeKind.TEXT, parent=parent, text=text))
        siblings.append(index)

    for n in reversed(nodes):
        n.last_descendant = nodes[n.children[-1]].last_descendant if n.children else n.index
    return DocumentTree(nodes, unit_index=unit_index, href=href)


def _keeps(source: object) -> bool:
    if isinstance(source, Tag):
        return True
    return isinstance(source, NavigableString) and not isinstance(source, _SKIPPED_STRINGS)
