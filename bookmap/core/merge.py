from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping

from bookmap.core.normalize import id_text

logger = logging.getLogger(__name__)


def identity_key(record: Mapping[str, Any]) -> str:
    """
    Merge key for a catalog record.

    ``id:<id>`` when the record carries a non-blank id, otherwise
    ``ta:<title>|<author>``. Two different id-less books sharing title and
    author collide on the fallback key; existing data depends on that, so it
    stays.
    """
    raw_id = record.get("id")
    if raw_id is not None and str(raw_id).strip():
        return f"id:{id_text(raw_id)}"
    title = str(record.get("title") or "").strip()
    author = str(record.get("author") or "").strip()
    return f"ta:{title}|{author}"


def coerce_id(record: Mapping[str, Any]) -> Dict[str, Any]:
    out = dict(record)
    raw_id = out.get("id")
    out["id"] = None if raw_id is None else id_text(raw_id)
    return out


def merge_collections(
    primary: Iterable[Mapping[str, Any]],
    secondary: Iterable[Mapping[str, Any]],
) -> List[Dict[str, Any]]:
    """
    Order-preserving union of two record collections, first source wins.

    Every record of ``primary`` is kept (later duplicates inside ``primary``
    replace earlier ones in place); a ``secondary`` record is only added when
    its identity key is not already present.
    """
    merged: Dict[str, Mapping[str, Any]] = {}
    for rec in primary:
        merged[identity_key(rec)] = rec
    n_primary = len(merged)
    skipped = 0
    for rec in secondary:
        key = identity_key(rec)
        if key in merged:
            skipped += 1
            continue
        merged[key] = rec
    logger.debug(
        "merge | primary=%s | added=%s | shadowed=%s",
        n_primary,
        len(merged) - n_primary,
        skipped,
    )
    return [coerce_id(rec) for rec in merged.values()]
