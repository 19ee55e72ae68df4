from __future__ import annotations

import pytest

from readahead.core.resolver import resolve
from readahead.ingestion.tree import build_tree
from readahead.layout.paginator import ColumnPaginator, LayoutConfig, PageState


def test_page_state_validation():
    state = PageState(page_width=600, total_pages=5, current_pages=(3, 2, 3))
    assert state.current_pages == (2, 3)
    assert state.last_page == 3
    assert state.has_next_page
    assert state.window(4) == (1800, 2400)
    assert not PageState(page_width=600, total_pages=5, current_pages=(5,)).has_next_page
    with pytest.raises(ValueError):
        PageState(page_width=600, total_pages=0, current_pages=(1,))
    with pytest.raises(ValueError):
        PageState(page_width=600, total_pages=3, current_pages=(4,))
    with pytest.raises(ValueError):
        PageState(page_width=600, total_pages=3, current_pages=())
    with pytest.raises(ValueError):
        PageState(page_width=0, total_pages=3, current_pages=(1,))


def test_display_counts_pages(chapters):
    paginator = ColumnPaginator(LayoutConfig(page_width=100, chars_per_page=40))
    state = paginator.display(chapters[0], page=2)
    assert state.total_pages == 3
    assert state.current_pages == (2,)
    assert paginator.current_page_state(0) == state
    assert paginator.current_page_state(1) is None


def test_display_clamps_pages(chapters):
    paginator = ColumnPaginator(LayoutConfig(page_width=100, chars_per_page=40))
    assert paginator.display(chapters[0], page=9).current_pages == (3,)
    assert paginator.display(chapters[0], page=3, spread=2).current_pages == (3,)
    assert paginator.display(chapters[0], page=0, spread=2).current_pages == (1, 2)


def test_window_maps_to_page_text(chapters):
    tree = chapters[0]
    paginator = ColumnPaginator(LayoutConfig(page_width=100, chars_per_page=40))
    start, end = paginator.locations_for_window(tree, 100, 200)
    assert start.serialize() == "epubcfi(/6/2!/4/6/1:0)"
    assert end.serialize() == "epubcfi(/6/2!/4/8/1:20)"
    rng = resolve(start, end, tree)
    assert tree.nodes[rng.start.node].text == "Paragraph number 03."
    assert tree.nodes[rng.end.node].text == "Paragraph number 04."


def test_window_inside_a_leaf():
    tree = build_tree("<html><body><p>" + "x" * 100 + "</p></body></html>")
    paginator = ColumnPaginator(LayoutConfig(page_width=50, chars_per_page=30))
    start, end = paginator.locations_for_window(tree, 50, 100)
    assert start.serialize() == "epubcfi(/6/2!/2/2/1:30)"
    assert end.serialize() == "epubcfi(/6/2!/2/2/1:60)"
    assert paginator.total_pages(tree) == 4


def test_empty_unit_has_one_page():
    tree = build_tree("<html><body><img src='cover.png'/></body></html>")
    paginator = ColumnPaginator()
    assert paginator.total_pages(tree) == 1
    start, end = paginator.locations_for_window(tree, 0, 600)
    rng = resolve(start, end, tree)
    assert rng.start.node == tree.body


def test_transient_tree_does_not_change_display(chapters):
    paginator = ColumnPaginator(LayoutConfig(page_width=100, chars_per_page=40))
    paginator.display(chapters[0], page=1)
    paginator.locations_for_window(chapters[1], 0, 100)
    assert paginator.current_page_state(1) is None
    assert paginator.current_page_state(0).current_pages == (1,)
