from __future__ import annotations

import json
import logging

import pytest

from readahead.cli import main as cli_main
from readahead.ingestion import epub_reader

from conftest import chapter_markup, numbered


@pytest.fixture(autouse=True)
def quiet(monkeypatch):
    monkeypatch.setattr(cli_main, "configure_logging", lambda verbose=False: None)
    monkeypatch.setattr(epub_reader.fitz, "open", _no_fitz)


def _no_fitz(*args, **kwargs):
    raise RuntimeError("metadata not needed here")


def test_current_and_next_page_as_json(epub_path, capsys):
    code = cli_main.run(epub_path, page=3, show_next=True, min_length=0, page_width=100, chars_per_page=40, as_json=True)
    assert code == 0
    current, upcoming = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [p["text"] for p in current["paragraphs"]] == ["Paragraph number 05.", "Paragraph number 06."]
    assert [p["text"] for p in upcoming["paragraphs"]] == ["Next chapter par 01.", "Next chapter par 02."]
    assert upcoming["paragraphs"][0]["start_cfi"].startswith("epubcfi(/6/4!")


def test_flat_text_from_html(tmp_path, capsys):
    page = tmp_path / "page.xhtml"
    page.write_text(chapter_markup(numbered(2)), encoding="utf-8")
    assert cli_main.run(page, show_text=True) == 0
    assert capsys.readouterr().out.strip() == "Paragraph number 01.\nParagraph number 02."


def test_walk_writes_transcript(epub_path, tmp_path):
    out_dir = tmp_path / "out"
    code = cli_main.run(epub_path, min_length=0, page_width=100, chars_per_page=40, walk_all=True, out_dir=out_dir)
    assert code == 0
    lines = (out_dir / "book.paragraphs.jsonl").read_text(encoding="utf-8").splitlines()
    records = [json.loads(line) for line in lines]
    assert len(records) == 10
    assert records[0]["unit"] == 0 and records[0]["page"] == 1
    assert records[-1]["unit"] == 1 and records[-1]["text"] == "Next chapter par 04."
    assert (out_dir / "book.paragraphs.txt").exists()


def test_bad_input(tmp_path):
    broken = tmp_path / "broken.epub"
    broken.write_bytes(b"not a zip")
    assert cli_main.run(broken) == 1


def test_unit_out_of_range(epub_path):
    assert cli_main.run(epub_path, unit=7) == 1


def test_timed_steps_log_at_debug(caplog):
    caplog.set_level(logging.DEBUG)
    assert cli_main._timed("Squaring", lambda x: x * x, 4) == 16
    assert "Squaring took" in caplog.text
