"""Fragment locations: string-encoded, structural addresses inside a document unit.

The encoding follows EPUB CFI as readers use it::

    epubcfi(/6/8!/4/2/1:12)            point: unit 3, text node /4/2/1, offset 12
    epubcfi(/6/8!/4/2,/1:0,/3:40)      range: common parent /4/2, then start and end

``/6/N`` addresses the spine item ``N / 2 - 1``. Content steps start at the
root element of the unit: even steps pick the (step/2)-th element child, odd
steps pick the text between element children.

Bracketed assertions after a step or offset (``/4[body01]``, ``:10[;s=b]``)
are accepted and ignored; serialized locations never carry them.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..ingestion.tree import DocumentTree, TreeBoundary

PREFIX = "epubcfi("
SPINE_STEP = 6

# bracketed assertions ("[chap01]", "[;s=b]"); "^" escapes the next character
_ASSERTION = r"\[(?:\^.|[^\]^])*\]"
_ASSERTION_RE = re.compile(_ASSERTION)
_STEPS_RE = re.compile(rf"^((?:/\d+(?:{_ASSERTION})?)*)(?::(\d+)(?:{_ASSERTION})?)?$")


class LocationError(Exception):
    """Base class for fragment location failures."""


class MalformedLocation(LocationError, ValueError):
    """The identifier string cannot be parsed."""


class UnresolvedLocation(LocationError, LookupError):
    """The identifier does not map into the given tree."""


@dataclass(frozen=True)
class LocationPath:
    steps: Tuple[int, ...]
    offset: Optional[int] = None

    def render(self) -> str:
        text = "".join(f"/{s}" for s in self.steps)
        if self.offset is not None:
            text += f":{self.offset}"
        return text

    def sort_key(self) -> Tuple[Tuple[int, ...], int]:
        return (self.steps, -1 if self.offset is None else self.offset)


@dataclass(frozen=True)
class FragmentLocation:
    unit_index: int
    start: LocationPath
    end: Optional[LocationPath] = None

    @property
    def is_range(self) -> bool:
        return self.end is not None

    # -- string form ---------------------------------------------------

    @classmethod
    def parse(cls, value: str) -> "FragmentLocation":
        if not isinstance(value, str):
            raise MalformedLocation(f"location must be a string, got {type(value).__name__}")
        raw = value.strip()
        if not (raw.startswith(PREFIX) and raw.endswith(")")):
            raise MalformedLocation(f"not a fragment location: {value!r}")
        parts = _split_outside_assertions(raw[len(PREFIX):-1], ",")
        if len(parts) not in (1, 3):
            raise MalformedLocation(f"expected a point or a three-part range: {value!r}")
        head_parts = _split_outside_assertions(parts[0], "!")
        if len(head_parts) != 2:
            raise MalformedLocation(f"expected one '!' indirection: {value!r}")
        package, content = head_parts
        unit_index = _parse_unit(package, value)
        head = _parse_path(content, value)
        if len(parts) == 1:
            return cls(unit_index=unit_index, start=head)
        if head.offset is not None:
            raise MalformedLocation(f"range parent path cannot carry an offset: {value!r}")
        start_local = _parse_path(parts[1], value)
        end_local = _parse_path(parts[2], value)
        if not start_local.steps or not end_local.steps:
            raise MalformedLocation(f"range edges need at least one step: {value!r}")
        return cls(
            unit_index=unit_index,
            start=LocationPath(head.steps + start_local.steps, start_local.offset),
            end=LocationPath(head.steps + end_local.steps, end_local.offset),
        )

    def serialize(self) -> str:
        package = f"/{SPINE_STEP}/{2 * (self.unit_index + 1)}!"
        if self.end is None:
            return f"{PREFIX}{package}{self.start.render()})"
        a, b = self.start.steps, self.end.steps
        shared = 0
        limit = min(len(a), len(b)) - 1
        while shared < limit and a[shared] == b[shared]:
            shared += 1
        parent = LocationPath(a[:shared])
        start_local = LocationPath(a[shared:], self.start.offset)
        end_local = LocationPath(b[shared:], self.end.offset)
        return f"{PREFIX}{package}{parent.render()},{start_local.render()},{end_local.render()})"

    def __str__(self) -> str:
        return self.serialize()

    # -- ordering --------------------------------------------------------

    def _sort_key(self):
        return (self.unit_index,) + self.start.sort_key()

    def compare(self, other: "FragmentLocation") -> int:
        """-1, 0 or 1 as this location sorts before, with, or after ``other``."""
        mine, theirs = self._sort_key(), other._sort_key()
        if mine < theirs:
            return -1
        if mine > theirs:
            return 1
        return 0

    def __lt__(self, other: "FragmentLocation") -> bool:
        return self.compare(other) < 0

    def __le__(self, other: "FragmentLocation") -> bool:
        return self.compare(other) <= 0

    def __gt__(self, other: "FragmentLocation") -> bool:
        return self.compare(other) > 0

    def __ge__(self, other: "FragmentLocation") -> bool:
        return self.compare(other) >= 0

    # -- tree mapping ----------------------------------------------------

    def resolve_to_tree(self, tree: DocumentTree, end: bool = False) -> TreeBoundary:
        """Map the start (or, for ranges, optionally the end) edge to a tree boundary."""
        if tree.unit_index != self.unit_index:
            raise UnresolvedLocation(
                f"location for unit {self.unit_index} applied to unit {tree.unit_index}"
            )
        path = self.end if (end and self.end is not None) else self.start
        try:
            node = tree.root_element
        except LookupError as e:
            raise UnresolvedLocation(str(e)) from e
        for step in path.steps:
            child = tree.child_at_step(node, step)
            if child is None:
                raise UnresolvedLocation(f"step /{step} not found below node {node} for {self}")
            node = child

        target = tree.node(node)
        if path.offset is not None:
            if not target.is_text:
                raise UnresolvedLocation(f"character offset on element node for {self}")
            return TreeBoundary(node, min(path.offset, len(target.text)))
        if target.is_text:
            return TreeBoundary(node, len(target.text) if end else 0)
        return TreeBoundary(node, len(target.children) if end else 0)

    @classmethod
    def from_boundary(cls, tree: DocumentTree, boundary: TreeBoundary) -> "FragmentLocation":
        return cls(unit_index=tree.unit_index, start=_path_for(tree, boundary))

    @classmethod
    def from_range(cls, tree_range) -> "FragmentLocation":
        tree = tree_range.tree
        return cls(
            unit_index=tree.unit_index,
            start=_path_for(tree, tree_range.start),
            end=_path_for(tree, tree_range.end),
        )

    @classmethod
    def span(cls, start: "FragmentLocation", end: "FragmentLocation") -> "FragmentLocation":
        """Range location from the start edge of ``start`` to the last edge of ``end``."""
        if start.unit_index != end.unit_index:
            raise ValueError("cannot span locations of different units")
        return cls(unit_index=start.unit_index, start=start.start, end=end.end or end.start)


def is_location_string(value: object) -> bool:
    if not isinstance(value, str):
        return False
    try:
        FragmentLocation.parse(value)
    except MalformedLocation:
        return False
    return True


def _parse_unit(package: str, original: str) -> int:
    m = _STEPS_RE.match(package)
    if not m or m.group(2) is not None:
        raise MalformedLocation(f"bad package path in {original!r}")
    steps = _step_numbers(m.group(1))
    if len(steps) != 2 or steps[0] != SPINE_STEP or steps[1] < 2 or steps[1] % 2:
        raise MalformedLocation(f"bad spine reference in {original!r}")
    return steps[1] // 2 - 1


def _parse_path(text: str, original: str) -> LocationPath:
    m = _STEPS_RE.match(text)
    if not m:
        raise MalformedLocation(f"bad path {text!r} in {original!r}")
    steps = _step_numbers(m.group(1))
    if any(s <= 0 for s in steps):
        raise MalformedLocation(f"steps must be positive in {original!r}")
    offset = int(m.group(2)) if m.group(2) is not None else None
    return LocationPath(steps, offset)


def _step_numbers(text: str) -> Tuple[int, ...]:
    return tuple(int(s) for s in _ASSERTION_RE.sub("", text).split("/")[1:])


def _split_outside_assertions(text: str, sep: str) -> List[str]:
    parts = []
    start = 0
    inside = False
    i = 0
    while i < len(text):
        ch = text[i]
        if inside and ch == "^":
            i += 2
            continue
        if ch == "[":
            inside = True
        elif ch == "]":
            inside = False
        elif ch == sep and not inside:
            parts.append(text[start:i])
            start = i + 1
        i += 1
    parts.append(text[start:])
    return parts


def _path_for(tree: DocumentTree, boundary: TreeBoundary) -> LocationPath:
    n = tree.node(boundary.node)
    if n.is_text:
        return LocationPath(tree.path_of(n.index), boundary.offset)
    if boundary.offset == 0 or not n.children:
        return LocationPath(tree.path_of(n.index))
    if boundary.offset < len(n.children):
        child = tree.node(n.children[boundary.offset])
        return LocationPath(tree.path_of(child.index), 0 if child.is_text else None)
    last = tree.node(n.children[-1])
    if last.is_text:
        return LocationPath(tree.path_of(last.index), len(last.text))
    # after a trailing element: point at its last text, or at the element itself
    texts = list(tree.text_nodes(last.index))
    if texts:
        return LocationPath(tree.path_of(texts[-1]), len(tree.node(texts[-1]).text))
    return LocationPath(tree.path_of(last.index))
