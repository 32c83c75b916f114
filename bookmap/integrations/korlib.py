"""
National Library of Korea lookups.

Two services sit behind one ``provider`` switch:

* ``seoji`` - the ISBN/CIP registry (``SearchApi.do``), answers with
  ``{"docs": [...]}`` and upper-case field names.
* ``kolis`` - the KOLIS-NET union catalogue, answers with
  ``{"result": [...]}`` and ``*_info`` field names.

``auto`` asks seoji first and only falls back to kolis when seoji fails or
returns nothing. Each response variant has its own mapper; nothing looks
for alternative key spellings at runtime.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import requests

from bookmap.core.models import LibraryItem
from bookmap.core.normalize import normalize_isbn
from bookmap.core.parse import parse_loose_json
from bookmap.errors import InvalidIdentifier, ProviderUnavailable
from bookmap.integrations.http_client import fetch_text, make_session

logger = logging.getLogger(__name__)

SEOJI_URL = "https://www.nl.go.kr/seoji/SearchApi.do"
KOLIS_URL = "https://www.nl.go.kr/NL/search/openApi/search.do"

PROVIDERS = ("auto", "seoji", "kolis")


def _s(val: Any) -> str:
    if val is None:
        return ""
    return str(val).strip()


def map_seoji_doc(doc: Dict[str, Any]) -> LibraryItem:
    # EA_ISBN is the single-volume ISBN; SET_ISBN covers multi-volume sets
    isbn = normalize_isbn(_s(doc.get("EA_ISBN")) or _s(doc.get("SET_ISBN")))
    return LibraryItem(
        title=_s(doc.get("TITLE")),
        author=_s(doc.get("AUTHOR")),
        publisher=_s(doc.get("PUBLISHER")),
        ISBN=isbn,
        pub_year=_s(doc.get("PUBLISH_PREDATE"))[:4],
        image=_s(doc.get("TITLE_URL")),
        # seoji only links to the introduction page
        description=_s(doc.get("BOOK_INTRODUCTION_URL")),
    )


def map_kolis_row(row: Dict[str, Any]) -> LibraryItem:
    return LibraryItem(
        title=_s(row.get("title_info")),
        author=_s(row.get("author_info")),
        publisher=_s(row.get("pub_info")),
        ISBN=normalize_isbn(_s(row.get("isbn"))),
        pub_year=_s(row.get("pub_year_info"))[:4],
        image=_s(row.get("TITLE_URL")),
        description="",
    )


@dataclass(frozen=True)
class SeojiResponse:
    docs: List[Dict[str, Any]] = field(default_factory=list)
    provider: str = "seoji"

    def items(self) -> List[LibraryItem]:
        return [map_seoji_doc(d) for d in self.docs if isinstance(d, dict)]


@dataclass(frozen=True)
class KolisResponse:
    result: List[Dict[str, Any]] = field(default_factory=list)
    provider: str = "kolis"

    def items(self) -> List[LibraryItem]:
        return [map_kolis_row(r) for r in self.result if isinstance(r, dict)]


LibraryResponse = Union[SeojiResponse, KolisResponse]


def _list_at(data: Any, key: str) -> List[Dict[str, Any]]:
    val = data.get(key) if isinstance(data, dict) else None
    return val if isinstance(val, list) else []


def read_library_response(provider: str, data: Any) -> LibraryResponse:
    if provider == "seoji":
        return SeojiResponse(docs=_list_at(data, "docs"))
    if provider == "kolis":
        return KolisResponse(result=_list_at(data, "result"))
    raise ValueError(f"unknown library provider: {provider}")


class KorLibClient:
    def __init__(
        self,
        seoji_key: str,
        kolis_key: str,
        *,
        session: Optional[requests.Session] = None,
        timeout_s: Optional[float] = None,
    ) -> None:
        self.seoji_key = seoji_key
        self.kolis_key = kolis_key
        self.session = session or make_session()
        self.timeout_s = timeout_s

    def _call(self, provider: str, url: str, params: dict) -> List[LibraryItem]:
        label = f"KorLib:{provider}"
        text = fetch_text(self.session, url, params=params, timeout_s=self.timeout_s, label=label)
        response = read_library_response(provider, parse_loose_json(text, label=label))
        items = [it for it in response.items() if it.title]
        logger.info("korlib | provider=%s | items=%s", provider, len(items))
        return items

    def search_seoji(self, isbn: str, *, page: int = 1, size: int = 10) -> List[LibraryItem]:
        params = {
            "cert_key": self.seoji_key,
            "result_style": "json",
            "page_no": str(page),
            "page_size": str(size),
            "isbn": isbn,
        }
        return self._call("seoji", SEOJI_URL, params)

    def search_kolis(self, isbn: str, *, page: int = 1, size: int = 10) -> List[LibraryItem]:
        params = {
            "key": self.kolis_key,
            "apiType": "json",
            "detailSearch": "true",
            "isbnOp": "isbn",
            "isbnCode": isbn,
            "pageNum": str(page),
            "pageSize": str(size),
        }
        return self._call("kolis", KOLIS_URL, params)

    def search(self, q: str, *, provider: str = "auto", page: int = 1, size: int = 10) -> List[LibraryItem]:
        if provider not in PROVIDERS:
            raise ValueError(f"provider must be one of {', '.join(PROVIDERS)}")
        isbn = normalize_isbn(q)
        if not isbn:
            raise InvalidIdentifier(q, "isbn (q) is required")

        if provider == "seoji":
            return self.search_seoji(isbn, page=page, size=size)
        if provider == "kolis":
            return self.search_kolis(isbn, page=page, size=size)

        try:
            items = self.search_seoji(isbn, page=page, size=size)
        except ProviderUnavailable as e:
            logger.warning("korlib seoji failed, trying kolis | isbn=%s | err=%s", isbn, e)
            items = []
        if not items:
            items = self.search_kolis(isbn, page=page, size=size)
        return items
