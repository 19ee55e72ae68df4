from __future__ import annotations

import logging
from typing import Union

from ..ingestion.tree import DocumentTree
from ..locations.fragment import FragmentLocation
from .ranges import TreeRange

LocationLike = Union[str, FragmentLocation]


def as_location(value: LocationLike) -> FragmentLocation:
    if isinstance(value, FragmentLocation):
        return value
    return FragmentLocation.parse(value)


def resolve(start: LocationLike, end: LocationLike, tree: DocumentTree) -> TreeRange:
    """Turn two fragment locations into an ordered TreeRange over ``tree``.

    Raises MalformedLocation or UnresolvedLocation. A window whose start sorts
    after its end is swapped and logged rather than rejected, since page-offset
    arithmetic upstream can produce one.
    """
    start_loc = as_location(start)
    end_loc = as_location(end)
    start_boundary = start_loc.resolve_to_tree(tree)
    end_boundary = end_loc.resolve_to_tree(tree, end=True)
    rng, swapped = TreeRange.ordered(tree, start_boundary, end_boundary)
    if swapped:
        logging.warning("Reversed location window repaired: start=%s end=%s", start_loc, end_loc)
    return rng
