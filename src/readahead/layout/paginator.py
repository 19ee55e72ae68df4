from __future__ import annotations

import logging
import math
from bisect import bisect_left, bisect_right
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Tuple

from ..ingestion.tree import DocumentTree, TreeBoundary
from ..locations.fragment import FragmentLocation


@dataclass(frozen=True)
class PageState:
    page_width: float
    total_pages: int
    current_pages: Tuple[int, ...]

    def __post_init__(self) -> None:
        if self.page_width <= 0:
            raise ValueError("page_width must be positive")
        if self.total_pages < 1:
            raise ValueError("total_pages must be >= 1")
        pages = tuple(sorted(set(self.current_pages)))
        if not pages:
            raise ValueError("at least one page must be current")
        if pages[0] < 1 or pages[-1] > self.total_pages:
            raise ValueError(f"current pages {pages} outside 1..{self.total_pages}")
        object.__setattr__(self, "current_pages", pages)

    @property
    def last_page(self) -> int:
        return self.current_pages[-1]

    @property
    def has_next_page(self) -> bool:
        return self.last_page < self.total_pages

    def window(self, page: int) -> Tuple[float, float]:
        """Pixel window of a 1-based page in the unit's own coordinates."""
        return ((page - 1) * self.page_width, page * self.page_width)


class Paginator(Protocol):
    def current_page_state(self, unit_index: int) -> Optional[PageState]:
        ...

    def locations_for_window(
        self, tree: DocumentTree, pixel_start: float, pixel_end: float
    ) -> Tuple[FragmentLocation, FragmentLocation]:
        ...


@dataclass
class LayoutConfig:
    page_width: float = 600.0
    chars_per_page: int = 1200


@dataclass
class _ColumnLayout:
    """Visible text of one unit packed into a single stream of characters."""
    tree: DocumentTree
    leaves: List[int]
    starts: List[int]
    total_chars: int

    @classmethod
    def build(cls, tree: DocumentTree) -> "_ColumnLayout":
        leaves: List[int] = []
        starts: List[int] = []
        cursor = 0
        for index in tree.text_nodes(tree.body):
            text = tree.nodes[index].text
            if not text.strip():
                continue
            leaves.append(index)
            starts.append(cursor)
            cursor += len(text)
        return cls(tree=tree, leaves=leaves, starts=starts, total_chars=cursor)

    def boundary_at(self, char: int, closing: bool = False) -> TreeBoundary:
        if not self.leaves:
            body = self.tree.body
            return TreeBoundary(body, len(self.tree.nodes[body].children) if closing else 0)
        char = max(0, min(char, self.total_chars))
        if closing:
            k = max(bisect_left(self.starts, char) - 1, 0)
        else:
            k = max(min(bisect_right(self.starts, char) - 1, len(self.leaves) - 1), 0)
        leaf = self.leaves[k]
        offset = min(max(char - self.starts[k], 0), len(self.tree.nodes[leaf].text))
        return TreeBoundary(leaf, offset)


class ColumnPaginator:
    """Reference layout engine: fixed number of characters per page-wide column."""

    def __init__(self, config: Optional[LayoutConfig] = None) -> None:
        self.config = config or LayoutConfig()
        if self.config.chars_per_page < 1 or self.config.page_width <= 0:
            raise ValueError("chars_per_page and page_width must be positive")
        self._layouts: Dict[int, _ColumnLayout] = {}
        self._pages: Dict[int, Tuple[int, ...]] = {}

    def total_pages(self, tree: DocumentTree) -> int:
        layout = self._layout_for(tree)
        return max(1, math.ceil(layout.total_chars / self.config.chars_per_page))

    def display(self, tree: DocumentTree, page: int = 1, spread: int = 1) -> PageState:
        layout = _ColumnLayout.build(tree)
        self._layouts[tree.unit_index] = layout
        total = self.total_pages(tree)
        first = max(1, min(page, total))
        last = min(first + max(spread, 1) - 1, total)
        self._pages[tree.unit_index] = tuple(range(first, last + 1))
        logging.debug("Displaying unit %d pages %s of %d", tree.unit_index, self._pages[tree.unit_index], total)
        return self.current_page_state(tree.unit_index)

    def current_page_state(self, unit_index: int) -> Optional[PageState]:
        layout = self._layouts.get(unit_index)
        pages = self._pages.get(unit_index)
        if layout is None or not pages:
            return None
        return PageState(
            page_width=self.config.page_width,
            total_pages=self.total_pages(layout.tree),
            current_pages=pages,
        )

    def locations_for_window(
        self, tree: DocumentTree, pixel_start: float, pixel_end: float
    ) -> Tuple[FragmentLocation, FragmentLocation]:
        layout = self._layout_for(tree)
        scale = self.config.chars_per_page / self.config.page_width
        start = layout.boundary_at(int(round(pixel_start * scale)))
        end = layout.boundary_at(int(round(pixel_end * scale)), closing=True)
        return FragmentLocation.from_boundary(tree, start), FragmentLocation.from_boundary(tree, end)

    def _layout_for(self, tree: DocumentTree) -> _ColumnLayout:
        cached = self._layouts.get(tree.unit_index)
        if cached is not None and cached.tree is tree:
            return cached
        # transient trees (e.g. a unit loaded ahead) never enter the displayed state
        return _ColumnLayout.build(tree)
