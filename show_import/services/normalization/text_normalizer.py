"""Canonical text cleanup used before chunking and matching.

``normalize`` is deterministic and idempotent: running it on its own output
returns the same string. It never raises and never returns None.
"""

import re
import unicodedata
from typing import Optional


# Vertical separators that PDF and email extractors emit in place of "\n"
_LINE_BREAKS = str.maketrans({
    "\f": "\n",
    "\v": "\n",
    "\x85": "\n",
    "\u2028": "\n",
    "\u2029": "\n",
})
_DROPPED_CATEGORIES = {"Cc", "Cf", "Cs"}
_MULTI_SPACE = re.compile(r" {2,}")
_MULTI_BLANK = re.compile(r"\n{3,}")


def _keep_char(ch: str) -> bool:
    if ch in "\n\t":
        return True
    if ch == "\ufffd":
        return False
    return unicodedata.category(ch) not in _DROPPED_CATEGORIES


def _to_space(ch: str) -> str:
    if ch == "\t" or unicodedata.category(ch) == "Zs":
        return " "
    return ch


def normalize(raw_text: Optional[str]) -> str:
    """Clean raw extracted text into canonical form.

    Steps, in order:
    1. unify line endings (CRLF, CR, form feeds, unicode separators)
    2. drop control, format, surrogate and replacement characters
    3. NFC-compose
    4. turn tabs and unicode spaces into plain spaces
    5. collapse space runs and strip every line
    6. collapse three or more newlines into one blank line

    Args:
        raw_text: Text from a file extractor, paste box or email body

    Returns:
        str: Normalized text (empty string for empty/None input)
    """
    if not raw_text:
        return ""

    if isinstance(raw_text, bytes):
        raw_text = raw_text.decode("utf-8", errors="replace")

    text = raw_text.replace("\r\n", "\n").replace("\r", "\n").translate(_LINE_BREAKS)
    text = "".join(ch for ch in text if _keep_char(ch))
    text = unicodedata.normalize("NFC", text)
    text = "".join(_to_space(ch) for ch in text)

    lines = [_MULTI_SPACE.sub(" ", line).strip() for line in text.split("\n")]
    text = _MULTI_BLANK.sub("\n\n", "\n".join(lines))

    return text.strip()


def count_words(text: Optional[str]) -> int:
    """Count whitespace-delimited words."""
    if not text:
        return 0
    return len(text.split())
