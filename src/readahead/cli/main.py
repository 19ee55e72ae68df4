from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
import zipfile
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm

from ..core.paragraphs import ParagraphUnit
from ..core.predictor import PredictorConfig
from ..ingestion.epub_reader import EpubBook, EpubUnitLoader
from ..ingestion.html_reader import HtmlUnitLoader
from ..layout.paginator import ColumnPaginator, LayoutConfig
from ..session import ReaderSession
from ..text.cleaning import clean_for_display
from ..utils.io import derive_output_target, write_transcript
from ..utils.logging import configure_logging


def _timed(label: str, fn, *args):
    started = time.perf_counter()
    result = fn(*args)
    logging.debug("%s took %.1f ms", label, (time.perf_counter() - started) * 1000)
    return result

def _open_book(path: Path):
    if path.suffix.lower() == ".epub":
        book = EpubBook.open(path)
        info = book.metadata()
        logging.info("Title: %s | Author: %s | %d TOC entries", info.title, info.author, len(info.toc))
        return book, EpubUnitLoader(book)
    loader = HtmlUnitLoader([path])
    return loader, loader


def _print_paragraphs(label: str, paragraphs: Optional[List[ParagraphUnit]], as_json: bool) -> None:
    if as_json:
        print(json.dumps({"page": label, "paragraphs": [p.to_dict() for p in paragraphs or []]}, ensure_ascii=False))
        return
    print(f"== {label} ({len(paragraphs or [])} paragraphs)")
    for p in paragraphs or []:
        print(f"[{p.cfi_range}]\n{clean_for_display(p.text)}\n")


def walk_book(book, session: ReaderSession, min_length: int, out_dir: Optional[Path], book_path: Path) -> Path:
    """Extract the paragraphs of every page of every unit into a transcript."""
    collected = []
    for unit_index in range(book.unit_count):
        tree = book.load_tree(unit_index)
        state = session.display(tree, page=1)
        if state is None:
            continue
        for page in tqdm(range(1, state.total_pages + 1), desc=f"Unit {unit_index}", unit="page"):
            session.display(tree, page=page)
            collected.append((unit_index, page, session.get_current_page_paragraphs(min_length) or []))
    target = derive_output_target(book_path, out_dir)
    count = write_transcript(target, collected)
    logging.info("Wrote %d paragraphs to %s", count, target.transcript_path)
    return target.transcript_path


def run(
    book_path: Path,
    unit: int = 0,
    page: int = 1,
    spread: int = 1,
    show_next: bool = False,
    show_text: bool = False,
    min_length: int = 50,
    page_width: float = 600.0,
    chars_per_page: int = 1200,
    timeout: float = 10.0,
    walk_all: bool = False,
    out_dir: Optional[Path] = None,
    as_json: bool = False,
    verbose: bool = False,
) -> int:
    configure_logging(verbose=verbose)
    try:
        book, loader = _open_book(book_path)
    except (OSError, ValueError, KeyError, zipfile.BadZipFile) as e:
        logging.error("Cannot read %s: %s", book_path, e)
        return 1

    paginator = ColumnPaginator(LayoutConfig(page_width=page_width, chars_per_page=chars_per_page))
    session = ReaderSession(loader, paginator, PredictorConfig(min_length=min_length, load_timeout_s=timeout))

    if walk_all:
        print(str(_timed("Transcript", walk_book, book, session, min_length, out_dir, book_path)))
        return 0

    if unit < 0 or unit >= book.unit_count:
        logging.error("Unit %d out of range (book has %d units)", unit, book.unit_count)
        return 1
    tree = book.load_tree(unit)
    state = session.display(tree, page=page, spread=spread)
    logging.info("Unit %d (%s): pages %s of %d", unit, tree.href, state.current_pages, state.total_pages)

    if show_text:
        page_text = session.get_current_page_text()
        if page_text is None:
            logging.error("No page is displayed")
            return 1
        print(page_text.text)
    else:
        current = _timed("Current page paragraphs", session.get_current_page_paragraphs, min_length)
        _print_paragraphs(f"unit {unit} page {page}", current, as_json)

    if show_next:
        upcoming = _timed("Next page prediction", asyncio.run, session.get_next_page_paragraphs(min_length))
        _print_paragraphs("next page", upcoming, as_json)
    session.close()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Paragraphs of the current and next page of a book")
    parser.add_argument("book", type=Path, help="EPUB or (X)HTML file")
    parser.add_argument("--unit", type=int, default=0, help="Document unit (spine item) to display")
    parser.add_argument("--page", type=int, default=1, help="1-based page within the unit")
    parser.add_argument("--spread", type=int, default=1, help="Pages visible at once (2 for spreads)")
    parser.add_argument("--next", dest="show_next", action="store_true", help="Also predict the next page's paragraphs")
    parser.add_argument("--text", dest="show_text", action="store_true", help="Print the page as flat text")
    parser.add_argument("--min-length", type=int, default=50, help="Drop paragraphs shorter than this")
    parser.add_argument("--page-width", type=float, default=600.0)
    parser.add_argument("--chars-per-page", type=int, default=1200)
    parser.add_argument("--timeout", type=float, default=10.0, help="Seconds to wait for the next unit to load")
    parser.add_argument("--all", dest="walk_all", action="store_true", help="Write paragraphs of every page to a transcript")
    parser.add_argument("--out-dir", type=Path, default=None)
    parser.add_argument("--json", dest="as_json", action="store_true")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    sys.exit(run(
        book_path=args.book,
        unit=args.unit,
        page=args.page,
        spread=args.spread,
        show_next=args.show_next,
        show_text=args.show_text,
        min_length=args.min_length,
        page_width=args.page_width,
        chars_per_page=args.chars_per_page,
        timeout=args.timeout,
        walk_all=args.walk_all,
        out_dir=args.out_dir,
        as_json=args.as_json,
        verbose=args.verbose,
    ))


if __name__ == "__main__":
    main()
