from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List, Optional, Sequence

from .tree import DocumentTree, build_tree


def read_html(path: Path, unit_index: int = 0) -> DocumentTree:
    """Read a loose (X)HTML file as one document unit."""
    markup = Path(path).read_text(encoding="utf-8", errors="ignore")
    return build_tree(markup, unit_index=unit_index, href=Path(path).name)


class HtmlUnitLoader:
    """Treats an ordered list of (X)HTML files as the units of one document."""

    def __init__(self, paths: Sequence[Path]) -> None:
        self.paths: List[Path] = [Path(p) for p in paths]

    @property
    def unit_count(self) -> int:
        return len(self.paths)

    def load_tree(self, unit_index: int) -> DocumentTree:
        return read_html(self.paths[unit_index], unit_index=unit_index)

    async def load_unit(self, unit_index: int) -> Optional[DocumentTree]:
        if unit_index < 0 or unit_index >= len(self.paths):
            return None
        return await asyncio.to_thread(self.load_tree, unit_index)
