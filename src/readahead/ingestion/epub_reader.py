from __future__ import annotations

import asyncio
import logging
import posixpath
import warnings
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import unquote

import fitz  # pymupdf
from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning

from .tree import DocumentTree, build_tree

CONTAINER_PATH = "META-INF/container.xml"
XHTML_TYPES = {"application/xhtml+xml", "text/html"}


@dataclass
class BookInfo:
    title: Optional[str] = None
    author: Optional[str] = None
    toc: List[Tuple[int, str, int]] = field(default_factory=list)  # (level, title, page)


class EpubBook:
    """Spine-ordered document units of an EPUB file."""

    def __init__(self, path: Path, package_path: str, hrefs: List[str], opf_title: Optional[str], opf_author: Optional[str]) -> None:
        self.path = Path(path)
        self.package_path = package_path
        self.hrefs = hrefs
        self._opf_title = opf_title
        self._opf_author = opf_author

    @classmethod
    def open(cls, path: Path) -> "EpubBook":
        path = Path(path)
        with zipfile.ZipFile(path) as archive, warnings.catch_warnings():
            # container.xml and the package document are XML read by the lenient HTML parser
            warnings.simplefilter("ignore", XMLParsedAsHTMLWarning)
            container = BeautifulSoup(archive.read(CONTAINER_PATH), "html.parser")
            rootfile = container.find("rootfile")
            if rootfile is None or not rootfile.get("full-path"):
                raise ValueError(f"{path}: container.xml names no package document")
            package_path = rootfile["full-path"]
            package = BeautifulSoup(archive.read(package_path), "html.parser")

        base = posixpath.dirname(package_path)
        manifest = {}
        for item in package.find_all("item"):
            if item.get("id") and item.get("href"):
                manifest[item["id"]] = (item["href"], item.get("media-type", ""))

        hrefs: List[str] = []
        for ref in package.find_all("itemref"):
            entry = manifest.get(ref.get("idref", ""))
            if entry is None:
                logging.warning("Spine item %r has no manifest entry; skipping", ref.get("idref"))
                continue
            href, media_type = entry
            if media_type and media_type not in XHTML_TYPES:
                logging.debug("Skipping non-XHTML spine item %s (%s)", href, media_type)
                continue
            hrefs.append(posixpath.normpath(posixpath.join(base, unquote(href))))

        title = package.find("dc:title")
        author = package.find("dc:creator")
        logging.info("Opened %s: %d units", path.name, len(hrefs))
        return cls(
            path=path,
            package_path=package_path,
            hrefs=hrefs,
            opf_title=title.get_text(strip=True) if title else None,
            opf_author=author.get_text(strip=True) if author else None,
        )

    @property
    def unit_count(self) -> int:
        return len(self.hrefs)

    def unit_href(self, unit_index: int) -> str:
        return self.hrefs[unit_index]

    def load_tree(self, unit_index: int) -> DocumentTree:
        href = self.unit_href(unit_index)
        with zipfile.ZipFile(self.path) as archive:
            data = archive.read(href)
        return build_tree(data.decode("utf-8", errors="replace"), unit_index=unit_index, href=href)

    def metadata(self) -> BookInfo:
        info = BookInfo(title=self._opf_title, author=self._opf_author)
        try:
            doc = fitz.open(str(self.path))
        except Exception as e:
            logging.warning("Could not open %s for metadata: %s", self.path.name, e)
            return info
        with doc:
            meta = doc.metadata or {}
            info.title = meta.get("title") or info.title
            info.author = meta.get("author") or info.author
            try:
                info.toc = [(lvl, title, page) for lvl, title, page, *_ in doc.get_toc()]
            except Exception as e:
                logging.warning("Failed to read table of contents: %s", e)
        return info


class EpubUnitLoader:
    """Loads units of an EpubBook off the event loop."""

    def __init__(self, book: EpubBook) -> None:
        self.book = book

    async def load_unit(self, unit_index: int) -> Optional[DocumentTree]:
        if unit_index < 0 or unit_index >= self.book.unit_count:
            return None
        return await asyncio.to_thread(self.book.load_tree, unit_index)
