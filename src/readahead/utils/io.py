from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from ..core.paragraphs import ParagraphUnit

OUTPUT_DIR = Path("output") / "paragraphs"


@dataclass
class OutputTarget:
    directory: Path
    base_name: str

    @property
    def transcript_path(self) -> Path:
        return self.directory / f"{self.base_name}.paragraphs.txt"

    @property
    def jsonl_path(self) -> Path:
        return self.directory / f"{self.base_name}.paragraphs.jsonl"


def derive_output_target(input_path: Path, out_dir: Path | None = None) -> OutputTarget:
    directory = out_dir if out_dir is not None else OUTPUT_DIR
    directory.mkdir(parents=True, exist_ok=True)
    return OutputTarget(directory=directory, base_name=Path(input_path).stem)


def write_transcript(target: OutputTarget, pages: Iterable[tuple[int, int, list[ParagraphUnit]]]) -> int:
    """Write paragraphs per (unit, page) as text and JSON lines; returns the paragraph count."""
    count = 0
    with open(target.transcript_path, "w", encoding="utf-8") as txt, open(target.jsonl_path, "w", encoding="utf-8") as jsonl:
        for unit_index, page, paragraphs in pages:
            for idx, p in enumerate(paragraphs):
                txt.write(f"[unit {unit_index:03d} | page {page:04d} | paragraph {idx:02d}]\n{p.text}\n\n")
                record = {"unit": unit_index, "page": page, **p.to_dict()}
                jsonl.write(json.dumps(record, ensure_ascii=False) + "\n")
                count += 1
    return count
