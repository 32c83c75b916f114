from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Set, Tuple

from bookmap.core.models import (
    DIVISION_ORDER,
    FACET_FIELDS,
    LEVEL_ORDER,
    BookRecord,
    Facet,
)
from bookmap.core.normalize import norm, normalize_division, split_list, whole_field

SPLIT_FACETS = {"카테고리", "주제", "장르"}

# Script groups in Korean collation: punctuation and symbols, digits,
# then Hangul and Han ahead of Latin and everything else.
_RANK_PUNCT = 0
_RANK_DIGIT = 1
_RANK_HANGUL = 2
_RANK_HAN = 3
_RANK_LATIN = 4
_RANK_OTHER = 5


def _char_rank(ch: str) -> int:
    cp = ord(ch)
    if 0xAC00 <= cp <= 0xD7A3 or 0x1100 <= cp <= 0x11FF or 0x3130 <= cp <= 0x318F:
        return _RANK_HANGUL
    if 0x4E00 <= cp <= 0x9FFF or 0x3400 <= cp <= 0x4DBF or 0xF900 <= cp <= 0xFAFF:
        return _RANK_HAN
    if ch.isdigit():
        return _RANK_DIGIT
    if ch.isalpha():
        return _RANK_LATIN if cp < 0x250 else _RANK_OTHER
    return _RANK_PUNCT


def korean_sort_key(s: str) -> Tuple:
    chars = tuple((_char_rank(ch), ch.casefold()) for ch in s)
    # lower case before upper case on an otherwise equal string
    return chars, s.swapcase()


def sort_ko(values: Iterable[str]) -> List[str]:
    return sorted(set(values), key=korean_sort_key)


def ordered_with_canon(observed: Set[str], canon: Sequence[str]) -> List[str]:
    head = [v for v in canon if v in observed]
    tail = sort_ko(v for v in observed if v not in canon)
    return head + tail


@dataclass(frozen=True)
class FacetValues:
    category: List[str] = field(default_factory=list)
    author: List[str] = field(default_factory=list)
    translator: List[str] = field(default_factory=list)
    subject: List[str] = field(default_factory=list)
    genre: List[str] = field(default_factory=list)
    division: List[str] = field(default_factory=list)
    level: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "category": list(self.category),
            "author": list(self.author),
            "translator": list(self.translator),
            "subject": list(self.subject),
            "genre": list(self.genre),
            "division": list(self.division),
            "level": list(self.level),
        }


def facet_keys(book: BookRecord, facet_type: str) -> List[str]:
    """Grouping keys of one book under a facet type (empty for 전체/unknown)."""
    if facet_type == "구분":
        dv = normalize_division(book.division)
        return [dv] if dv else []
    if facet_type == "단계":
        return whole_field(book.level)
    attr = FACET_FIELDS.get(facet_type)
    if not attr:
        return []
    value = getattr(book, attr)
    if facet_type in SPLIT_FACETS:
        return split_list(value)
    return whole_field(value)


def extract_facet_values(books: Iterable[BookRecord]) -> FacetValues:
    seen: Dict[str, Set[str]] = {k: set() for k in FacetValues.__dataclass_fields__}
    for b in books:
        seen["category"].update(split_list(b.category))
        seen["author"].update(whole_field(b.author))
        seen["translator"].update(whole_field(b.translator))
        seen["subject"].update(split_list(b.subject))
        seen["genre"].update(split_list(b.genre))
        dv = normalize_division(b.division)
        if dv:
            seen["division"].add(dv)
        lvl = norm(b.level)
        if lvl:
            seen["level"].add(lvl)

    return FacetValues(
        category=sort_ko(seen["category"]),
        author=sort_ko(seen["author"]),
        translator=sort_ko(seen["translator"]),
        subject=sort_ko(seen["subject"]),
        genre=sort_ko(seen["genre"]),
        division=ordered_with_canon(seen["division"], DIVISION_ORDER),
        level=ordered_with_canon(seen["level"], LEVEL_ORDER),
    )


def tab_values(facets: FacetValues, facet_type: str) -> List[str]:
    """Chip values offered under a facet tab."""
    if facet_type == "단계":
        return facets.level or list(LEVEL_ORDER)
    if facet_type == "구분":
        return facets.division or list(DIVISION_ORDER)
    attr = FACET_FIELDS.get(facet_type)
    if not attr:
        return []
    return list(getattr(facets, attr))


def filter_books(books: Iterable[BookRecord], facet: Facet) -> List[BookRecord]:
    books = list(books)
    if facet.is_all or not facet.value:
        return books
    wanted = norm(facet.value).lower()
    if facet.type not in FACET_FIELDS:
        return books
    return [b for b in books if wanted in {k.lower() for k in facet_keys(b, facet.type)}]
