from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import requests

from bookmap.errors import ParseFailure, ProviderUnavailable

logger = logging.getLogger(__name__)

USER_AGENT = "bookmap/1.0"

# Query parameters that carry credentials; masked before logging.
_SECRET_PARAMS = {"ttbkey", "cert_key", "key"}


def _safe_body_preview(resp: requests.Response, limit: int = 800) -> str:
    try:
        if "application/json" in (resp.headers.get("Content-Type") or "").lower():
            try:
                payload = resp.json()
                text = json.dumps(payload, ensure_ascii=False, indent=2)
            except ValueError:
                text = resp.text or ""
        else:
            text = resp.text or ""
    except Exception:
        return "<unavailable>"
    text = text.replace("\r", " ").strip()
    if len(text) > limit:
        return text[:limit].rstrip() + "..."
    return text


def _masked(params: Optional[dict]) -> dict:
    return {k: ("***" if k in _SECRET_PARAMS else v) for k, v in (params or {}).items()}


def make_session(accept: str = "application/json, text/xml;q=0.9, */*;q=0.8") -> requests.Session:
    s = requests.Session()
    s.headers.update({
        "Accept": accept,
        "User-Agent": USER_AGENT,
    })
    return s


def _check_status(resp: requests.Response, url: str, params: Optional[dict], label: str) -> None:
    if resp.status_code >= 400:
        logger.error(
            "http error | label=%s | status=%s | url=%s | params=%s | body=%s",
            label,
            resp.status_code,
            url,
            _masked(params),
            _safe_body_preview(resp),
        )
        raise ProviderUnavailable(label, f"HTTP {resp.status_code}")


def fetch_text(
    session: requests.Session,
    url: str,
    *,
    params: Optional[dict] = None,
    timeout_s: Optional[float] = None,
    label: str = "HTTP",
) -> str:
    """
    Single GET returning the raw body.

    No retries: network errors and HTTP error statuses surface as
    ProviderUnavailable so callers can tell them apart from empty results.
    """
    logger.debug("request | label=%s | method=GET | url=%s | params=%s", label, url, _masked(params))
    try:
        r = session.get(url, params=params, timeout=timeout_s)
    except requests.RequestException as e:
        logger.error("request error | label=%s | url=%s | err=%r", label, url, e)
        raise ProviderUnavailable(label, f"request failed: {e}") from e
    _check_status(r, url, params, label)
    return r.text or ""


def post_json(
    session: requests.Session,
    url: str,
    payload: Dict[str, Any],
    *,
    timeout_s: Optional[float] = None,
    label: str = "HTTP",
) -> Any:
    logger.debug("request | label=%s | method=POST | url=%s", label, url)
    try:
        r = session.post(url, json=payload, timeout=timeout_s)
    except requests.RequestException as e:
        logger.error("request error | label=%s | url=%s | err=%r", label, url, e)
        raise ProviderUnavailable(label, f"request failed: {e}") from e
    _check_status(r, url, None, label)
    try:
        return r.json() if r.content else {}
    except ValueError as e:
        raise ParseFailure(label, "response body is not JSON", _safe_body_preview(r, limit=200)) from e
