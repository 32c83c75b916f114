from __future__ import annotations

import re
from typing import Any, List

from bookmap.errors import InvalidIdentifier

_ISBN_JUNK = re.compile(r"[^0-9Xx]")
# ASCII separators plus the full-width ones used in Korean data entry
_TAG_SPLIT = re.compile(r"[,/|·•，、・／]")


def normalize_isbn(x: str) -> str:
    x = (x or "").strip()
    x = _ISBN_JUNK.sub("", x).upper()
    return x


def isbn13_check_digit(core12: str) -> int:
    s = 0
    for i, ch in enumerate(core12[:12]):
        s += int(ch) * (1 if i % 2 == 0 else 3)
    return (10 - (s % 10)) % 10


def to_isbn13(isbn10: str) -> str:
    """
    Convert a 10-character ISBN to its 13-digit form.

    Only the first nine digits are carried over; the ISBN-10 check character
    is discarded and the EAN check digit is recomputed.
    """
    core9 = normalize_isbn(isbn10)[:9]
    core = "978" + core9
    return f"{core}{isbn13_check_digit(core)}"


def canonical_isbn13(raw: str) -> str:
    clean = normalize_isbn(raw)
    if not clean:
        raise InvalidIdentifier(raw, "isbn is required")
    if len(clean) == 10:
        if not clean[:9].isdigit():
            raise InvalidIdentifier(raw, "isbn-10 must start with nine digits")
        return to_isbn13(clean)
    if len(clean) == 13:
        # passed through as is; the provider decides whether it exists
        return clean
    raise InvalidIdentifier(raw)


def norm(v: Any) -> str:
    if v is None:
        return ""
    return str(v).strip()


def normalize_division(v: Any) -> str:
    s = norm(v)
    if not s:
        return ""
    if "번역" in s:
        return "번역서"
    if "원서" in s:
        return "원서"
    if "국외" in s or "해외" in s:
        return "국외서"
    if "국내" in s:
        return "국내서"
    return s


def split_list(value: Any) -> List[str]:
    """Split a multi-valued tag field. Whitespace is never a separator."""
    s = norm(value)
    if not s:
        return []
    return [t.strip() for t in _TAG_SPLIT.split(s) if t.strip()]


def whole_field(value: Any) -> List[str]:
    s = norm(value)
    return [s] if s else []


def id_text(raw_id: Any) -> str:
    """Render a record id the way the spreadsheet backend writes it."""
    if isinstance(raw_id, bool):
        return "true" if raw_id else "false"
    if isinstance(raw_id, float) and raw_id.is_integer():
        return str(int(raw_id))
    return str(raw_id)
