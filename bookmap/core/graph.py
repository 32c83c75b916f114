from __future__ import annotations

import logging
from typing import Dict, Iterable, List

from bookmap.core.facets import facet_keys
from bookmap.core.models import FACET_ALL, BookRecord, GraphLink

logger = logging.getLogger(__name__)

NEUTRAL_COLOR = "#94a3b8"


def color_for_string(s: str) -> str:
    h = 0
    for ch in s:
        h = (h * 31 + ord(ch)) % 360
    return f"hsl({h} 60% 55%)"


def _with_ids(books: Iterable[BookRecord]) -> List[BookRecord]:
    return [b for b in books if b.id]


def group_buckets(books: Iterable[BookRecord], facet_type: str) -> Dict[str, List[str]]:
    """facet value -> ids sharing it, first-seen order, no repeats."""
    buckets: Dict[str, List[str]] = {}
    for b in _with_ids(books):
        for key in facet_keys(b, facet_type):
            ids = buckets.setdefault(key, [])
            if b.id not in ids:
                ids.append(b.id)
    return buckets


def build_links(books: Iterable[BookRecord], facet_type: str) -> List[GraphLink]:
    """
    Chain the books of every bucket: ``ids[i-1] -> ids[i]``.

    A bucket of n books yields n-1 links, so edge count stays linear in the
    bucket size. The 전체 facet has no links.
    """
    if not facet_type or facet_type == FACET_ALL:
        return []
    links: List[GraphLink] = []
    for key, ids in group_buckets(books, facet_type).items():
        for i in range(1, len(ids)):
            links.append(GraphLink(source=ids[i - 1], target=ids[i], group=key))
    return links


def build_graph(books: Iterable[BookRecord], facet_type: str) -> dict:
    books = _with_ids(books)
    nodes = []
    for b in books:
        keys = facet_keys(b, facet_type) if facet_type and facet_type != FACET_ALL else []
        group = keys[0] if keys else ""
        nodes.append(
            {
                "id": b.id,
                "title": b.title,
                "group": group,
                "color": color_for_string(group) if group else NEUTRAL_COLOR,
            }
        )
    links = build_links(books, facet_type)
    logger.debug("graph | facet=%s | nodes=%s | links=%s", facet_type, len(nodes), len(links))
    return {
        "facet": facet_type or FACET_ALL,
        "nodes": nodes,
        "links": [{"source": l.source, "target": l.target, "group": l.group} for l in links],
    }
