from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .core.paragraphs import ParagraphUnit, build_paragraphs, filter_by_length, range_text
from .core.predictor import PagePredictor, PredictorConfig, UnitLoader
from .core.ranges import TreeRange
from .core.resolver import resolve
from .ingestion.tree import DocumentTree
from .layout.paginator import PageState, Paginator


@dataclass(frozen=True)
class PageText:
    text: str
    start_location: str
    end_location: str


class ReaderSession:
    """What the rest of an application talks to.

    ``display`` is the only call that changes navigation state; the page
    queries read the displayed tree and page state and never alter them.
    """

    def __init__(self, loader: UnitLoader, paginator: Paginator, config: Optional[PredictorConfig] = None) -> None:
        self.loader = loader
        self.paginator = paginator
        self.config = config or PredictorConfig()
        self.predictor = PagePredictor(paginator, loader, self.config)
        self.tree: Optional[DocumentTree] = None
        self.closed = False

    def display(self, tree: DocumentTree, page: int = 1, spread: int = 1) -> Optional[PageState]:
        self.tree = tree
        show = getattr(self.paginator, "display", None)
        if show is not None:
            return show(tree, page=page, spread=spread)
        return self.paginator.current_page_state(tree.unit_index)

    @property
    def page_state(self) -> Optional[PageState]:
        if self.closed or self.tree is None:
            return None
        return self.paginator.current_page_state(self.tree.unit_index)

    def _current_window(self) -> Optional[Tuple[DocumentTree, str, str]]:
        state = self.page_state
        if state is None or self.tree is None:
            return None
        pixel_start = state.window(state.current_pages[0])[0]
        pixel_end = state.window(state.last_page)[1]
        start, end = self.paginator.locations_for_window(self.tree, pixel_start, pixel_end)
        return self.tree, start.serialize(), end.serialize()

    def _current_range(self) -> Optional[TreeRange]:
        window = self._current_window()
        if window is None:
            return None
        tree, start, end = window
        return resolve(start, end, tree)

    def get_current_page_text(self) -> Optional[PageText]:
        try:
            window = self._current_window()
            if window is None:
                return None
            tree, start, end = window
            tree_range = resolve(start, end, tree)
            return PageText(text=range_text(tree_range), start_location=start, end_location=end)
        except Exception as e:
            logging.error("Error extracting visible text: %s", e)
            return None

    def get_current_page_paragraphs(self, min_length: Optional[int] = None) -> Optional[List[ParagraphUnit]]:
        """Paragraphs of the displayed page(s); None when nothing is displayed."""
        limit = self.config.min_length if min_length is None else min_length
        try:
            tree_range = self._current_range()
            if tree_range is None:
                return None
            return filter_by_length(build_paragraphs(tree_range), max(limit, 0))
        except Exception as e:
            logging.error("Error extracting paragraphs: %s", e)
            return []

    async def get_next_page_paragraphs(self, min_length: Optional[int] = None) -> List[ParagraphUnit]:
        try:
            state = self.page_state
        except Exception as e:
            logging.error("Error reading page state: %s", e)
            return []
        tree = self.tree
        if state is None or tree is None:
            return []
        paragraphs = await self.predictor.predict_next(tree, state, min_length)
        if self.closed:
            logging.debug("Session closed while predicting; dropping %d paragraphs", len(paragraphs))
            return []
        return paragraphs

    def close(self) -> None:
        self.closed = True
        self.predictor.cancel_pending()
        self.tree = None
