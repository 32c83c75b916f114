from __future__ import annotations

import logging
import math
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from bookmap.core.merge import merge_collections
from bookmap.core.models import BookRecord
from bookmap.core.normalize import normalize_division

logger = logging.getLogger(__name__)

Loader = Callable[[], List[Dict[str, Any]]]

SOURCES = ("both", "remote", "local")


def to_stamp(created_at: Any, book_id: Any) -> float:
    """Recency stamp in epoch millis: created_at first, then a numeric id."""
    s = str(created_at or "").strip()
    if s:
        try:
            dt = datetime.fromisoformat(s.replace(" ", "T", 1).replace("Z", "+00:00"))
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return dt.timestamp() * 1000.0
        except ValueError:
            pass
    try:
        n = float(str(book_id).strip())
    except (TypeError, ValueError):
        return 0.0
    return n if math.isfinite(n) else 0.0


def sort_books(books: Iterable[BookRecord]) -> List[BookRecord]:
    return sorted(books, key=lambda b: to_stamp(b.created_at, b.id), reverse=True)


def latest_books(books: Iterable[BookRecord], limit: int) -> List[BookRecord]:
    return sort_books(books)[: max(0, int(limit))]


def _expose(record: BookRecord) -> BookRecord:
    return replace(record, division=normalize_division(record.division))


class CatalogStore:
    """
    Session-scoped book collection.

    Loaders are injected so the store never knows where remote or local data
    comes from. The held collection is replaced wholesale on every merge.
    """

    def __init__(
        self,
        remote_loader: Optional[Loader] = None,
        local_loader: Optional[Loader] = None,
        initial: Optional[Iterable[Mapping[str, Any]]] = None,
    ) -> None:
        self._lock = threading.Lock()
        self._remote_loader = remote_loader
        self._local_loader = local_loader
        self._records: List[BookRecord] = [BookRecord.from_mapping(r) for r in (initial or [])]

    def _fetch(self, loader: Optional[Loader], label: str) -> List[Dict[str, Any]]:
        if loader is None:
            return []
        rows = loader() or []
        logger.info("catalog load | source=%s | records=%s", label, len(rows))
        return rows

    def load(self, source: str = "both", prefer: str = "remote") -> List[BookRecord]:
        if source not in SOURCES:
            raise ValueError(f"unknown source: {source}")
        remote = self._fetch(self._remote_loader, "remote") if source in ("both", "remote") else []
        local = self._fetch(self._local_loader, "local") if source in ("both", "local") else []
        priority = "b" if prefer == "local" else "a"
        self.apply_merge(remote, local, priority)
        return self.current_collection()

    def apply_merge(
        self,
        a: Iterable[Mapping[str, Any]],
        b: Iterable[Mapping[str, Any]],
        priority: str = "a",
    ) -> List[BookRecord]:
        if priority not in ("a", "b"):
            raise ValueError(f"priority must be 'a' or 'b', got {priority!r}")
        first, second = (a, b) if priority == "a" else (b, a)
        merged = [BookRecord.from_mapping(r) for r in merge_collections(first, second)]
        with self._lock:
            self._records = merged
        return list(merged)

    def current_collection(self) -> List[BookRecord]:
        with self._lock:
            records = list(self._records)
        exposed = [_expose(r) for r in records if r.id is not None]
        if len(exposed) != len(records):
            logger.debug("catalog | dropped %s records without id", len(records) - len(exposed))
        return exposed

    def size(self) -> int:
        with self._lock:
            return len(self._records)

    def find(self, book_id: Any) -> Optional[BookRecord]:
        wanted = str(book_id if book_id is not None else "").strip()
        if not wanted:
            return None
        books = self.current_collection()
        for b in books:
            if str(b.id).strip() == wanted:
                return b
        try:
            wanted_n = float(wanted)
        except ValueError:
            return None
        for b in books:
            try:
                if float(str(b.id)) == wanted_n:
                    return b
            except ValueError:
                continue
        return None
