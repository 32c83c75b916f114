# bookmap/cli.py
from __future__ import annotations

import argparse
import json
import logging
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler

from bookmap.config import AppConfig, load_dotenv
from bookmap.core.facets import extract_facet_values
from bookmap.core.graph import build_graph
from bookmap.core.models import FACET_ALL, FACET_TYPES
from bookmap.core.store import CatalogStore
from bookmap.enrich.reconcile import reconcile
from bookmap.errors import BookMapError
from bookmap.integrations.aladin import AladinClient
from bookmap.integrations.catalog_api import RemoteCatalog, load_local_snapshot
from bookmap.integrations.korlib import PROVIDERS, KorLibClient
from bookmap.io.export import write_catalog_csv, write_catalog_json, write_json


LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

logger = logging.getLogger(__name__)


def _emit(payload, out: Optional[str]) -> None:
    if out:
        write_json(payload, out)
        logger.info("Output: %s", out)
        return
    Console().print_json(json.dumps(payload, ensure_ascii=False))


def _store(cfg: AppConfig) -> CatalogStore:
    remote = RemoteCatalog(cfg.remote_url, timeout_s=cfg.timeout_s)
    return CatalogStore(
        remote_loader=remote.fetch_books,
        local_loader=lambda: load_local_snapshot(cfg.local_snapshot),
    )


def cmd_lookup(args: argparse.Namespace, cfg: AppConfig) -> None:
    client = AladinClient(cfg.require_aladin_key(), timeout_s=cfg.timeout_s)
    outcome = reconcile(
        args.isbn,
        lookup=client.lookup,
        search=client.keyword_search,
        primary_attempts=cfg.primary_attempts,
        fallback_attempts=cfg.fallback_attempts,
        cooldown_s=cfg.cooldown_s,
    )
    logger.info(
        "lookup | isbn13=%s | state=%s | attempts=%s | items=%s",
        outcome.isbn13,
        outcome.state.value,
        len(outcome.attempts),
        len(outcome.items),
    )
    _emit(outcome.to_dict(), args.out)


def cmd_search(args: argparse.Namespace, cfg: AppConfig) -> None:
    query = (args.query or "").strip()
    if len(query) < 2:
        raise SystemExit("Search query must be at least 2 characters.")
    client = AladinClient(cfg.require_aladin_key(), timeout_s=cfg.timeout_s)
    books, error = client.search_xml(query, query_type=args.query_type, max_results=args.max_results, start=args.start)
    if error is not None:
        raise SystemExit(f"Search failed: code={error.code} msg={error.message}")
    _emit({"books": books, "totalResults": len(books)}, args.out)


def cmd_korlib(args: argparse.Namespace, cfg: AppConfig) -> None:
    seoji, kolis = cfg.require_korlib_keys()
    client = KorLibClient(seoji, kolis, timeout_s=cfg.timeout_s)
    items = client.search(args.isbn, provider=args.provider, page=args.page, size=args.size)
    _emit({"provider": args.provider, "items": [it.to_dict() for it in items]}, args.out)


def cmd_merge(args: argparse.Namespace, cfg: AppConfig) -> None:
    books = _store(cfg).load(source=args.source, prefer=args.prefer)
    logger.info("Merged catalog: %s books | source=%s | prefer=%s", len(books), args.source, args.prefer)
    if args.out.lower().endswith(".csv"):
        write_catalog_csv(books, args.out)
    else:
        write_catalog_json(books, args.out)


def cmd_facets(args: argparse.Namespace, cfg: AppConfig) -> None:
    books = _store(cfg).load()
    _emit(extract_facet_values(books).to_dict(), args.out)


def cmd_graph(args: argparse.Namespace, cfg: AppConfig) -> None:
    books = _store(cfg).load()
    payload = build_graph(books, args.facet)
    logger.info("Graph: facet=%s | nodes=%s | links=%s", args.facet, len(payload["nodes"]), len(payload["links"]))
    _emit(payload, args.out)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="bookmap",
        description="Book map catalog tools: ISBN lookup, library search, catalog merge, facets and graph",
    )
    ap.add_argument("--log-level", default="info", help="Log level: debug, info, warning, error")
    ap.add_argument("--settings", default=None, help="YAML tuning file (attempts, cooldown_ms, timeout_s)")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("lookup", help="Resolve an ISBN-10/13 via Aladin (retries + keyword fallback)")
    p.add_argument("isbn")
    p.add_argument("--out", default=None, help="Write JSON here instead of stdout")
    p.set_defaults(func=cmd_lookup)

    p = sub.add_parser("search", help="Aladin title/keyword search")
    p.add_argument("query")
    p.add_argument("--query-type", default="Title", help="Title, Author, Publisher or Keyword")
    p.add_argument("--max-results", type=int, default=5)
    p.add_argument("--start", type=int, default=1)
    p.add_argument("--out", default=None)
    p.set_defaults(func=cmd_search)

    p = sub.add_parser("korlib", help="National Library of Korea lookup by ISBN")
    p.add_argument("isbn")
    p.add_argument("--provider", default="auto", choices=PROVIDERS)
    p.add_argument("--page", type=int, default=1)
    p.add_argument("--size", type=int, default=10)
    p.add_argument("--out", default=None)
    p.set_defaults(func=cmd_korlib)

    p = sub.add_parser("merge", help="Merge remote catalog and local snapshot")
    p.add_argument("--out", required=True, help="Output path (.json or .csv)")
    p.add_argument("--source", default="both", choices=("both", "remote", "local"))
    p.add_argument("--prefer", default="remote", choices=("remote", "local"))
    p.set_defaults(func=cmd_merge)

    p = sub.add_parser("facets", help="Observed facet values of the merged catalog")
    p.add_argument("--out", default=None)
    p.set_defaults(func=cmd_facets)

    p = sub.add_parser("graph", help="Graph nodes and chained links for one facet")
    p.add_argument("--facet", default=FACET_ALL, choices=FACET_TYPES)
    p.add_argument("--out", default=None)
    p.set_defaults(func=cmd_graph)

    return ap


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    level = LOG_LEVELS.get(args.log_level.lower(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )

    used = load_dotenv(".env")
    if used:
        logger.info("loaded .env: %s", used)
    else:
        logger.warning(".env not found via search paths; relying on existing environment variables")

    cfg = AppConfig.from_env(settings_path=args.settings)
    try:
        args.func(args, cfg)
    except BookMapError as e:
        raise SystemExit(str(e)) from e


if __name__ == "__main__":
    main()
