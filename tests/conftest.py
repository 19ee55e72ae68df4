from __future__ import annotations

import asyncio
import zipfile
from typing import Dict, List, Optional

import pytest

from readahead.core.ranges import TreeRange
from readahead.ingestion.tree import DocumentTree, TreeBoundary, build_tree

ALPHA_BETA = (
    "<html><head><title>t</title></head>"
    "<body><div><p>Alpha text.</p><p>Beta text.</p></div></body></html>"
)


def chapter_markup(texts: List[str], title: str = "Chapter") -> str:
    body = "\n".join(f"<p>{t}</p>" for t in texts)
    return (
        "<?xml version='1.0' encoding='utf-8'?>\n"
        '<html xmlns="http://www.w3.org/1999/xhtml">'
        f"<head><title>{title}</title></head><body>\n{body}\n</body></html>"
    )


def numbered(count: int, prefix: str = "Paragraph number") -> List[str]:
    # each text is exactly 20 characters for the default prefix
    return [f"{prefix} {i:02d}." for i in range(1, count + 1)]


def body_range(tree: DocumentTree) -> TreeRange:
    body = tree.body
    return TreeRange(tree, TreeBoundary(body, 0), TreeBoundary(body, len(tree.nodes[body].children)))


class FakeLoader:
    """In-memory unit loader; can be slowed down or told never to finish.

    A ``stubborn`` loader keeps going when cancelled and finishes one more
    ``delay`` later, raising ``error`` if one is given.
    """

    def __init__(
        self,
        trees: Optional[Dict[int, DocumentTree]] = None,
        delay: float = 0.0,
        never: bool = False,
        stubborn: bool = False,
        error: Optional[Exception] = None,
    ) -> None:
        self.trees = trees or {}
        self.delay = delay
        self.never = never
        self.stubborn = stubborn
        self.error = error
        self.calls: List[int] = []
        self.finished = False

    async def load_unit(self, unit_index: int) -> Optional[DocumentTree]:
        self.calls.append(unit_index)
        if self.never:
            await asyncio.Event().wait()
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                if not self.stubborn:
                    raise
                await asyncio.sleep(self.delay)
        self.finished = True
        if self.error is not None:
            raise self.error
        return self.trees.get(unit_index)


@pytest.fixture
def alpha_beta() -> DocumentTree:
    return build_tree(ALPHA_BETA)


@pytest.fixture
def chapters() -> Dict[int, DocumentTree]:
    return {
        0: build_tree(chapter_markup(numbered(6)), unit_index=0),
        1: build_tree(chapter_markup(numbered(4, prefix="Next chapter par")), unit_index=1),
    }


CONTAINER_XML = """<?xml version="1.0"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="OEBPS/content.opf" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>"""


def make_epub(path, chapter_markups: List[str], title: str = "Test Book", author: str = "A. Writer"):
    items = "\n".join(
        f'<item id="ch{i}" href="text/ch{i}.xhtml" media-type="application/xhtml+xml"/>'
        for i in range(1, len(chapter_markups) + 1)
    )
    spine = "\n".join(f'<itemref idref="ch{i}"/>' for i in range(1, len(chapter_markups) + 1))
    opf = f"""<?xml version="1.0" encoding="utf-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="3.0" unique-identifier="id">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:identifier id="id">urn:uuid:0000</dc:identifier>
    <dc:title>{title}</dc:title>
    <dc:creator>{author}</dc:creator>
    <dc:language>en</dc:language>
  </metadata>
  <manifest>
    {items}
    <item id="css" href="style.css" media-type="text/css"/>
    <item id="cover" href="cover.png" media-type="image/png"/>
  </manifest>
  <spine>
    {spine}
    <itemref idref="cover"/>
    <itemref idref="missing"/>
  </spine>
</package>"""
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("mimetype", "application/epub+zip")
        archive.writestr("META-INF/container.xml", CONTAINER_XML)
        archive.writestr("OEBPS/content.opf", opf)
        archive.writestr("OEBPS/style.css", "p { margin: 0 }")
        for i, markup in enumerate(chapter_markups, start=1):
            archive.writestr(f"OEBPS/text/ch{i}.xhtml", markup)
    return path


@pytest.fixture
def epub_path(tmp_path):
    return make_epub(
        tmp_path / "book.epub",
        [chapter_markup(numbered(6)), chapter_markup(numbered(4, prefix="Next chapter par"))],
    )
