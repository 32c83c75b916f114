from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from bookmap.core.normalize import id_text

FACET_ALL = "전체"
FACET_TYPES = ("전체", "카테고리", "단계", "저자", "역자", "주제", "장르", "구분")

# facet type -> BookRecord attribute
FACET_FIELDS = {
    "카테고리": "category",
    "단계": "level",
    "저자": "author",
    "역자": "translator",
    "주제": "subject",
    "장르": "genre",
    "구분": "division",
}

LEVEL_ORDER = ("입문", "초급", "중급", "고급", "전문")
DIVISION_ORDER = ("국내서", "국외서", "원서", "번역서")

BOOK_TEXT_FIELDS = (
    "title",
    "author",
    "publisher",
    "isbn",
    "image",
    "description",
    "category",
    "division",
    "level",
    "subject",
    "genre",
    "translator",
    "created_at",
)


def _text(val: Any) -> str:
    if val is None:
        return ""
    return str(val)


@dataclass(frozen=True)
class BookRecord:
    id: Optional[str]
    title: str = ""
    author: str = ""
    publisher: str = ""
    isbn: str = ""
    image: str = ""
    description: str = ""
    category: str = ""
    division: str = ""
    level: str = ""
    subject: str = ""
    genre: str = ""
    translator: str = ""
    created_at: str = ""

    # registrant, email, buy_link, reason, ... passed through untouched
    extras: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "BookRecord":
        raw_id = raw.get("id")
        values = {k: _text(raw.get(k)) for k in BOOK_TEXT_FIELDS}
        if not values["translator"] and raw.get("역자") is not None:
            values["translator"] = _text(raw.get("역자"))
        known = set(BOOK_TEXT_FIELDS) | {"id", "역자"}
        extras = {k: v for k, v in raw.items() if k not in known}
        return cls(
            id=None if raw_id is None else id_text(raw_id),
            extras=extras,
            **values,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = dict(self.extras)
        data = asdict(self)
        data.pop("extras", None)
        out.update(data)
        return out


@dataclass(frozen=True)
class Facet:
    type: str = FACET_ALL
    value: Optional[str] = None

    @property
    def is_all(self) -> bool:
        return not self.type or self.type == FACET_ALL


@dataclass(frozen=True)
class GraphLink:
    source: str
    target: str
    group: str = ""


@dataclass(frozen=True)
class ProviderErrorInfo:
    code: Optional[str]
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


@dataclass(frozen=True)
class LookupItem:
    title: str = ""
    author: str = ""
    publisher: str = ""
    isbn: str = ""
    image: str = ""
    description: str = ""

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class ProviderReply:
    """One provider answer: mapped items plus any in-band error signal."""

    items: List[LookupItem] = field(default_factory=list)
    error: Optional[ProviderErrorInfo] = None

    @property
    def ok(self) -> bool:
        return bool(self.items)


@dataclass(frozen=True)
class LibraryItem:
    title: str = ""
    author: str = ""
    publisher: str = ""
    ISBN: str = ""
    pub_year: str = ""
    image: str = ""
    description: str = ""

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)
