from __future__ import annotations

import html
import json
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from bookmap.core.models import ProviderErrorInfo
from bookmap.errors import ParseFailure

# <item ...> but not <itemsPerPage> / <itemPage>
_XML_ITEM_RE = re.compile(r"<item(?:\s[^>]*)?>[\s\S]*?</item>", re.IGNORECASE)
_XML_ERROR_CODE_RE = re.compile(r"<errorCode>\s*(\d+)\s*</errorCode>", re.IGNORECASE)
_XML_ERROR_MSG_RE = re.compile(r"<errorMessage>([^<]+)</errorMessage>", re.IGNORECASE)

_ERROR_CODE_KEYS = ("errorcode", "errcode")
_ERROR_MSG_KEYS = ("errormessage", "errmsg")

ALADIN_XML_TAGS = (
    "title",
    "author",
    "publisher",
    "pubDate",
    "description",
    "isbn",
    "isbn13",
    "cover",
    "categoryName",
    "priceStandard",
    "priceSales",
    "link",
)


def _preview(text: str, limit: int = 200) -> str:
    t = (text or "").replace("\r", " ").replace("\n", " ").strip()
    if len(t) > limit:
        return t[:limit].rstrip() + "..."
    return t


def _escape_json_char(c: str) -> str:
    if c == '"':
        return '\\"'
    if c == "\n":
        return "\\n"
    if c == "\r":
        return "\\r"
    if c == "\t":
        return "\\t"
    if ord(c) < 0x20:
        return "\\u%04x" % ord(c)
    return c


def requote_single_quoted(text: str) -> str:
    """
    Rewrite single-quoted string literals as JSON double-quoted strings.

    Double-quoted strings are copied through untouched so apostrophes inside
    them survive. Inside a single-quoted literal, ``\\'`` becomes a bare quote
    and any character that would break a JSON string is escaped.
    """
    out: List[str] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == '"':
            j = i + 1
            while j < n:
                if text[j] == "\\":
                    j += 2
                    continue
                if text[j] == '"':
                    break
                j += 1
            out.append(text[i : j + 1])
            i = j + 1
            continue
        if ch == "'":
            buf: List[str] = []
            j = i + 1
            while j < n and text[j] != "'":
                c = text[j]
                if c == "\\" and j + 1 < n:
                    nxt = text[j + 1]
                    buf.append("'" if nxt == "'" else c + nxt)
                    j += 2
                    continue
                buf.append(_escape_json_char(c))
                j += 1
            out.append('"' + "".join(buf) + '"')
            i = j + 1
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def _outer_object(text: str) -> str:
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        return ""
    return text[start : end + 1]


def parse_loose_json(text: str, *, label: str = "provider") -> Any:
    """
    Parse a JSON-ish provider body.

    Strict parse first; on failure, cut out the outermost ``{...}`` (drops
    JSONP-style trailing ``;`` and leading junk), requote single-quoted
    literals and retry once. Raises ParseFailure when both attempts fail.
    """
    body = text or ""
    try:
        return json.loads(body)
    except ValueError:
        pass

    candidate = _outer_object(body)
    if not candidate:
        raise ParseFailure(label, "response body is not JSON", _preview(body))
    try:
        return json.loads(requote_single_quoted(candidate), strict=False)
    except ValueError as e:
        raise ParseFailure(label, f"response body is not JSON ({e})", _preview(body)) from e


def find_provider_error(data: Any) -> Optional[ProviderErrorInfo]:
    """Detect an ``errorCode``/``errorMessage`` pair regardless of key casing."""
    if not isinstance(data, dict):
        return None
    node = data.get("error") if isinstance(data.get("error"), dict) else data
    lowered = {str(k).lower(): v for k, v in node.items()}
    code = next((lowered[k] for k in _ERROR_CODE_KEYS if k in lowered), None)
    msg = next((lowered[k] for k in _ERROR_MSG_KEYS if k in lowered), None)
    if code is None and msg is None:
        return None
    return ProviderErrorInfo(
        code=None if code is None else str(code),
        message=str(msg or ""),
    )


def xml_take(block: str, tag: str) -> str:
    t = re.escape(tag)
    cdata = re.search(
        rf"<{t}(?:\s[^>]*)?>\s*<!\[CDATA\[([\s\S]*?)\]\]>\s*</{t}>",
        block,
        re.IGNORECASE,
    )
    if cdata:
        return cdata.group(1).strip()
    plain = re.search(rf"<{t}(?:\s[^>]*)?>([^<]*)</{t}>", block, re.IGNORECASE)
    if plain:
        return html.unescape(plain.group(1)).strip()
    return ""


def parse_xml_items(xml: str, tags: Sequence[str]) -> List[Dict[str, str]]:
    out: List[Dict[str, str]] = []
    for block in _XML_ITEM_RE.findall(xml or ""):
        out.append({tag: xml_take(block, tag) for tag in tags})
    return out


def find_xml_error(xml: str) -> Optional[ProviderErrorInfo]:
    if "<error" not in (xml or ""):
        return None
    code = _XML_ERROR_CODE_RE.search(xml)
    msg = _XML_ERROR_MSG_RE.search(xml)
    return ProviderErrorInfo(
        code=code.group(1) if code else None,
        message=msg.group(1).strip() if msg else "Unknown error",
    )


def parse_int(value: Any) -> Optional[int]:
    s = str(value if value is not None else "").strip().replace(",", "")
    if not s:
        return None
    try:
        return int(s)
    except ValueError:
        return None


def drop_untitled(items: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [it for it in items if str(it.get("title") or "").strip()]


def parse_aladin_xml(xml: str) -> List[Dict[str, Any]]:
    """Project ItemSearch XML output into search-result records."""
    books: List[Dict[str, Any]] = []
    for it in parse_xml_items(xml, ALADIN_XML_TAGS):
        books.append(
            {
                "title": it["title"],
                "author": it["author"],
                "publisher": it["publisher"],
                "publishDate": it["pubDate"],
                "description": it["description"],
                "isbn": it["isbn13"] or it["isbn"],
                "image": it["cover"],
                "category": it["categoryName"],
                "priceStandard": parse_int(it["priceStandard"]),
                "priceSales": parse_int(it["priceSales"]),
                "link": it["link"],
            }
        )
    return drop_untitled(books)
