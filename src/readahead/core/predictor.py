from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, List, Optional, Protocol, Set

from ..ingestion.tree import DocumentTree
from ..layout.paginator import PageState, Paginator
from ..locations.fragment import LocationError
from .paragraphs import DEFAULT_MIN_LENGTH, ParagraphUnit, build_paragraphs, filter_by_length
from .resolver import resolve


class SectionLoadTimeout(Exception):
    """The next document unit did not load within the configured bound."""


class LoadAbandoned(Exception):
    """A pending unit load was cancelled because its session went away."""


class UnitLoader(Protocol):
    def load_unit(self, unit_index: int) -> Awaitable[Optional[DocumentTree]]:
        ...


@dataclass
class PredictorConfig:
    min_length: int = DEFAULT_MIN_LENGTH
    load_timeout_s: float = 10.0


class PredictionState(Enum):
    IDLE = "idle"
    COMPUTING_SAME_PAGE = "computing_same_page"
    COMPUTING_CROSS_SECTION = "computing_cross_section"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass
class Prediction:
    """Record of one predict_next() call."""
    state: PredictionState = PredictionState.IDLE
    reason: Optional[str] = None
    unit_index: Optional[int] = None
    page: Optional[int] = None
    paragraphs: List[ParagraphUnit] = field(default_factory=list)

    def move(self, state: PredictionState, reason: Optional[str] = None) -> None:
        logging.debug("Prediction %s -> %s%s", self.state.value, state.value, f" ({reason})" if reason else "")
        self.state = state
        self.reason = reason


class PagePredictor:
    """Works out which paragraphs the next displayed page will hold.

    Reads the displayed tree and page state it is given; the only thing it
    keeps is the set of in-flight unit loads, so a closing session can
    abandon them.
    """

    def __init__(self, paginator: Paginator, loader: UnitLoader, config: Optional[PredictorConfig] = None) -> None:
        self.paginator = paginator
        self.loader = loader
        self.config = config or PredictorConfig()
        self.last_prediction: Optional[Prediction] = None
        self._pending: Set[asyncio.Future] = set()

    async def predict_next(
        self,
        tree: DocumentTree,
        page_state: PageState,
        min_length: Optional[int] = None,
    ) -> List[ParagraphUnit]:
        prediction = Prediction()
        self.last_prediction = prediction
        limit = self.config.min_length if min_length is None else min_length
        try:
            if page_state.has_next_page:
                paragraphs = self._same_section(prediction, tree, page_state)
            else:
                paragraphs = await self._cross_section(prediction, tree, page_state)
        except SectionLoadTimeout as e:
            prediction.move(PredictionState.FAILED, "SectionLoadTimeout")
            logging.warning("%s", e)
            return []
        except LoadAbandoned:
            prediction.move(PredictionState.FAILED, "abandoned")
            return []
        except LocationError as e:
            prediction.move(PredictionState.FAILED, type(e).__name__)
            logging.warning("Next page locations could not be resolved: %s", e)
            return []
        except Exception as e:
            prediction.move(PredictionState.FAILED, type(e).__name__)
            logging.error("Next page prediction failed: %s", e)
            return []

        if paragraphs is None:
            return []
        prediction.paragraphs = filter_by_length(paragraphs, max(limit, 0))
        prediction.move(PredictionState.RESOLVED)
        return list(prediction.paragraphs)

    def _same_section(self, prediction: Prediction, tree: DocumentTree, page_state: PageState) -> List[ParagraphUnit]:
        prediction.move(PredictionState.COMPUTING_SAME_PAGE)
        next_page = page_state.last_page + 1
        prediction.unit_index, prediction.page = tree.unit_index, next_page
        pixel_start, pixel_end = page_state.window(next_page)
        return self._paragraphs_in_window(tree, pixel_start, pixel_end)

    async def _cross_section(
        self, prediction: Prediction, tree: DocumentTree, page_state: PageState
    ) -> Optional[List[ParagraphUnit]]:
        prediction.move(PredictionState.COMPUTING_CROSS_SECTION)
        next_unit = tree.unit_index + 1
        prediction.unit_index, prediction.page = next_unit, 1
        next_tree = await self._load_with_timeout(next_unit)
        if next_tree is None:
            prediction.move(PredictionState.FAILED, "no next unit")
            return None
        pixel_start, pixel_end = page_state.window(1)
        return self._paragraphs_in_window(next_tree, pixel_start, pixel_end)

    async def _load_with_timeout(self, unit_index: int) -> Optional[DocumentTree]:
        load = asyncio.ensure_future(self.loader.load_unit(unit_index))
        self._pending.add(load)
        try:
            done, _ = await asyncio.wait({load}, timeout=self.config.load_timeout_s)
        except asyncio.CancelledError:
            _abandon(load)
            raise
        finally:
            self._pending.discard(load)
        if load not in done:
            _abandon(load)
            raise SectionLoadTimeout(
                f"Unit {unit_index} did not load within {self.config.load_timeout_s:.1f}s"
            )
        if load.cancelled():
            raise LoadAbandoned(f"Load of unit {unit_index} was abandoned")
        return load.result()

    def _paragraphs_in_window(self, tree: DocumentTree, pixel_start: float, pixel_end: float) -> List[ParagraphUnit]:
        start, end = self.paginator.locations_for_window(tree, pixel_start, pixel_end)
        tree_range = resolve(start, end, tree)
        return build_paragraphs(tree_range)

    def cancel_pending(self) -> None:
        for load in list(self._pending):
            _abandon(load)
        self._pending.clear()


def _abandon(load: asyncio.Future) -> None:
    load.cancel()
    # a late result or error from the abandoned load is dropped
    load.add_done_callback(_discard_result)


def _discard_result(future: asyncio.Future) -> None:
    if not future.cancelled() and future.exception() is not None:
        logging.debug("Ignoring late failure of abandoned load: %s", future.exception())
