from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from bookmap.core.models import LookupItem, ProviderErrorInfo, ProviderReply
from bookmap.core.normalize import normalize_isbn, to_isbn13
from bookmap.core.parse import (
    find_provider_error,
    find_xml_error,
    parse_aladin_xml,
    parse_loose_json,
)
from bookmap.integrations.http_client import fetch_text, make_session

logger = logging.getLogger(__name__)

ALADIN_BASE_URL = "http://www.aladin.co.kr/ttb/api"
LOOKUP_URL = f"{ALADIN_BASE_URL}/ItemLookUp.aspx"
SEARCH_URL = f"{ALADIN_BASE_URL}/ItemSearch.aspx"

JSON_API_VERSION = "20131101"
XML_API_VERSION = "20070901"


def _s(val: Any) -> str:
    if val is None:
        return ""
    return str(val).strip()


def _pick_isbn(it: Dict[str, Any]) -> str:
    isbn13 = normalize_isbn(_s(it.get("isbn13")))
    if isbn13:
        return isbn13
    isbn = normalize_isbn(_s(it.get("isbn")))
    if len(isbn) == 10 and isbn[:9].isdigit():
        return to_isbn13(isbn)
    return isbn


def map_item(it: Dict[str, Any]) -> LookupItem:
    return LookupItem(
        title=_s(it.get("title")),
        author=_s(it.get("author")),
        publisher=_s(it.get("publisher")),
        isbn=_pick_isbn(it),
        image=_s(it.get("cover")),
        description=_s(it.get("description")),
    )


def read_reply(text: str, *, label: str) -> ProviderReply:
    """
    Classify one JSON-flavoured answer.

    Raises ParseFailure when the body cannot be recovered; an in-band error
    or an empty ``item`` list comes back as a reply without items.
    """
    data = parse_loose_json(text, label=label)
    error = find_provider_error(data)
    raw_items = data.get("item") if isinstance(data, dict) else None
    if not isinstance(raw_items, list):
        raw_items = []
    mapped = [map_item(it) for it in raw_items if isinstance(it, dict)]
    # title is the minimum for a usable record
    return ProviderReply(items=[m for m in mapped if m.title], error=error)


class AladinClient:
    def __init__(
        self,
        ttb_key: str,
        *,
        session: Optional[requests.Session] = None,
        timeout_s: Optional[float] = None,
    ) -> None:
        self.ttb_key = ttb_key
        self.session = session or make_session()
        self.timeout_s = timeout_s

    def lookup(self, isbn13: str) -> ProviderReply:
        params = {
            "ttbkey": self.ttb_key,
            "itemIdType": "ISBN13",
            "ItemId": isbn13,
            "output": "js",
            "Version": JSON_API_VERSION,
            "Cover": "Big",
        }
        text = fetch_text(self.session, LOOKUP_URL, params=params, timeout_s=self.timeout_s, label="AladinLookup")
        return read_reply(text, label="AladinLookup")

    def keyword_search(self, query: str) -> ProviderReply:
        params = {
            "ttbkey": self.ttb_key,
            "Query": query,
            "QueryType": "Keyword",
            "SearchTarget": "Book",
            "MaxResults": "10",
            "start": "1",
            "output": "js",
            "Version": JSON_API_VERSION,
            "Cover": "Big",
        }
        text = fetch_text(self.session, SEARCH_URL, params=params, timeout_s=self.timeout_s, label="AladinSearch")
        return read_reply(text, label="AladinSearch")

    def search_xml(
        self,
        query: str,
        *,
        query_type: str = "Title",
        max_results: int = 5,
        start: int = 1,
    ) -> Tuple[List[Dict[str, Any]], Optional[ProviderErrorInfo]]:
        params = {
            "ttbkey": self.ttb_key,
            "Query": query.strip(),
            "QueryType": query_type,
            "MaxResults": str(max_results),
            "start": str(start),
            "SearchTarget": "Book",
            "output": "xml",
            "Version": XML_API_VERSION,
            "Cover": "Big",
        }
        xml = fetch_text(self.session, SEARCH_URL, params=params, timeout_s=self.timeout_s, label="AladinSearchXML")
        error = find_xml_error(xml)
        if error is not None:
            logger.warning("aladin xml error | code=%s | msg=%s", error.code, error.message)
            return [], error
        books = parse_aladin_xml(xml)
        logger.info("aladin xml search | query=%s | books=%s", query, len(books))
        return books, None
