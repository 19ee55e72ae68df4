from __future__ import annotations

import re
import unicodedata

CONTROL_CHARS = ''.join(chr(i) for i in range(0, 32) if i not in (9, 10, 13)) + chr(127)
CONTROL_RE = re.compile(f"[{re.escape(CONTROL_CHARS)}]")
ZERO_WIDTH_RE = re.compile("[\u200B\u200C\u200D\u2060\uFEFF\u00AD]")
WHITESPACE_RE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    """Runs of whitespace become one space; ends are trimmed."""
    return WHITESPACE_RE.sub(" ", text).strip()


def clean_for_display(raw: str) -> str:
    text = unicodedata.normalize("NFC", raw)
    # Drop zero-width chars and soft hyphens, blank out control chars
    text = ZERO_WIDTH_RE.sub("", text)
    text = CONTROL_RE.sub(" ", text)
    return collapse_whitespace(text)
