from __future__ import annotations

import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from bookmap.errors import MissingConfiguration, ProviderUnavailable
from bookmap.integrations.http_client import fetch_text, make_session, post_json

logger = logging.getLogger(__name__)

CREATED_AT_FORMAT = "%Y-%m-%d %H:%M:%S"
REQUIRED_FIELDS = ("registrant", "email", "title", "author", "publisher", "category")


def _records_only(data: Any, label: str) -> List[Dict[str, Any]]:
    if not isinstance(data, list):
        logger.warning("%s: expected a JSON array, got %s; treating as empty", label, type(data).__name__)
        return []
    return [r for r in data if isinstance(r, dict)]


def load_local_snapshot(path: Optional[str]) -> List[Dict[str, Any]]:
    if not path:
        return []
    p = Path(path)
    if not p.exists():
        logger.warning("local snapshot not found: %s", p)
        return []
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("local snapshot unreadable: %s (%r)", p, e)
        return []
    return _records_only(data, f"local snapshot {p}")


def missing_required(payload: Dict[str, Any]) -> List[str]:
    missing = []
    for key in REQUIRED_FIELDS:
        val = payload.get(key)
        if isinstance(val, list):
            ok = any(str(v).strip() for v in val)
        else:
            ok = bool(str(val if val is not None else "").strip())
        if not ok:
            missing.append(key)
    return missing


def prepare_registration(payload: Dict[str, Any], *, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Fill in the fields the spreadsheet backend expects but callers may omit."""
    now = now or datetime.now()
    out = dict(payload)
    if not str(out.get("id") or "").strip():
        out["id"] = str(int(now.timestamp() * 1000))
    if not str(out.get("created_at") or "").strip():
        out["created_at"] = now.strftime(CREATED_AT_FORMAT)
    if isinstance(out.get("category"), list):
        out["category"] = ", ".join(str(c).strip() for c in out["category"] if str(c).strip())
    if out.get("email") and not out.get("e-mail"):
        out["e-mail"] = out["email"]
    return out


class RemoteCatalog:
    """Spreadsheet-backed catalog behind a single JSON endpoint."""

    def __init__(
        self,
        url: Optional[str],
        *,
        session: Optional[requests.Session] = None,
        timeout_s: Optional[float] = None,
    ) -> None:
        self.url = (url or "").strip()
        self.session = session or make_session()
        self.timeout_s = timeout_s

    def fetch_books(self) -> List[Dict[str, Any]]:
        if not self.url:
            logger.debug("remote catalog url not configured; skipping")
            return []
        started = time.monotonic()
        try:
            text = fetch_text(self.session, self.url, timeout_s=self.timeout_s, label="RemoteCatalog")
            data = json.loads(text)
        except (ProviderUnavailable, ValueError) as e:
            logger.warning("remote catalog unavailable, using no remote data: %s", e)
            return []
        rows = _records_only(data, "remote catalog")
        logger.info("remote catalog | records=%s | seconds=%.2f", len(rows), time.monotonic() - started)
        return rows

    def register(self, payload: Dict[str, Any]) -> Any:
        if not self.url:
            raise MissingConfiguration("BOOKMAP_REMOTE_URL")
        body = prepare_registration(payload)
        reply = post_json(self.session, self.url, body, timeout_s=self.timeout_s, label="RemoteCatalog")
        logger.info("registered book | id=%s | title=%s", body["id"], body.get("title", ""))
        return reply
