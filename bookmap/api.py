"""
HTTP boundary for the book map.

Endpoints:
- GET  /api/books                  : merged catalog (remote + local snapshot)
- POST /api/books                  : register a book with the remote catalog
- GET  /api/books/latest           : newest books first
- GET  /api/books/{book_id}        : one book
- GET  /api/aladin?isbn=           : ISBN lookup with retries and keyword fallback
- POST /api/aladin-search          : title/keyword search (XML output)
- GET  /api/korlib?q=&provider=    : National Library of Korea lookup
- GET  /api/facets                 : observed facet values and tab chips
- GET  /api/graph?facet=           : nodes and chained links for one facet

Domain errors are turned into HTTPException here and nowhere else.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, Body, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from bookmap.config import AppConfig
from bookmap.core.facets import extract_facet_values, filter_books, tab_values
from bookmap.core.graph import build_graph
from bookmap.core.models import FACET_ALL, FACET_TYPES, BookRecord, Facet
from bookmap.core.normalize import canonical_isbn13
from bookmap.core.store import SOURCES, CatalogStore, latest_books, sort_books
from bookmap.enrich.reconcile import reconcile
from bookmap.errors import InvalidIdentifier, MissingConfiguration, ProviderUnavailable
from bookmap.integrations.aladin import AladinClient
from bookmap.integrations.catalog_api import RemoteCatalog, load_local_snapshot, missing_required
from bookmap.integrations.korlib import PROVIDERS, KorLibClient

logger = logging.getLogger(__name__)

VERCEL_PREVIEW_REGEX = r"https://.*\.vercel\.app"


class AladinSearchRequest(BaseModel):
    # left untyped so a non-string query is a 400, not a 422
    query: Any = None
    queryType: str = "Title"
    maxResults: int = 5
    start: int = 1


class Services:
    """Lazily built provider clients; anything passed in is used as is."""

    def __init__(
        self,
        config: AppConfig,
        *,
        store: Optional[CatalogStore] = None,
        aladin: Optional[AladinClient] = None,
        korlib: Optional[KorLibClient] = None,
        remote: Optional[RemoteCatalog] = None,
        wait: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.wait = wait
        self._aladin = aladin
        self._korlib = korlib
        self.remote = remote or RemoteCatalog(config.remote_url, timeout_s=config.timeout_s)
        self.store = store or CatalogStore(
            remote_loader=self.remote.fetch_books,
            local_loader=lambda: load_local_snapshot(config.local_snapshot),
        )

    def aladin(self) -> AladinClient:
        if self._aladin is None:
            self._aladin = AladinClient(self.config.require_aladin_key(), timeout_s=self.config.timeout_s)
        return self._aladin

    def korlib(self) -> KorLibClient:
        if self._korlib is None:
            seoji, kolis = self.config.require_korlib_keys()
            self._korlib = KorLibClient(seoji, kolis, timeout_s=self.config.timeout_s)
        return self._korlib

    def books(self) -> List[BookRecord]:
        if self.store.size() == 0:
            return self.store.load()
        return self.store.current_collection()


def _services(request: Request) -> Services:
    return request.app.state.services


def build_router() -> APIRouter:
    router = APIRouter(prefix="/api", tags=["bookmap"])

    @router.get("/books")
    def list_books(
        request: Request,
        source: str = Query(default="both"),
        prefer: str = Query(default="remote"),
        facet: str = Query(default=FACET_ALL),
        value: Optional[str] = Query(default=None),
    ) -> List[Dict[str, Any]]:
        if source not in SOURCES:
            raise HTTPException(status_code=400, detail=f"source must be one of {', '.join(SOURCES)}")
        if prefer not in ("remote", "local"):
            raise HTTPException(status_code=400, detail="prefer must be remote or local")
        svc = _services(request)
        books = svc.store.load(source=source, prefer=prefer)
        books = filter_books(books, Facet(type=facet, value=value))
        return [b.to_dict() for b in sort_books(books)]

    @router.post("/books")
    def register_book(request: Request, payload: Dict[str, Any] = Body(...)) -> Any:
        missing = missing_required(payload)
        if missing:
            raise HTTPException(status_code=400, detail=f"missing required fields: {', '.join(missing)}")
        svc = _services(request)
        try:
            return svc.remote.register(payload)
        except MissingConfiguration as e:
            raise HTTPException(status_code=500, detail=str(e)) from e
        except ProviderUnavailable as e:
            raise HTTPException(status_code=500, detail=str(e)) from e

    @router.get("/books/latest")
    def latest(request: Request, limit: int = Query(default=10, ge=0, le=100)) -> List[Dict[str, Any]]:
        return [b.to_dict() for b in latest_books(_services(request).books(), limit)]

    @router.get("/books/{book_id}")
    def get_book(request: Request, book_id: str) -> Dict[str, Any]:
        svc = _services(request)
        svc.books()
        book = svc.store.find(book_id)
        if book is None:
            raise HTTPException(status_code=404, detail="book not found")
        return book.to_dict()

    @router.get("/aladin")
    def aladin_lookup(request: Request, isbn: str = Query(default="")) -> Dict[str, Any]:
        try:
            isbn13 = canonical_isbn13(isbn)
        except InvalidIdentifier as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        svc = _services(request)
        try:
            client = svc.aladin()
        except MissingConfiguration as e:
            raise HTTPException(status_code=500, detail=str(e)) from e
        cfg = svc.config
        try:
            outcome = reconcile(
                isbn13,
                lookup=client.lookup,
                search=client.keyword_search,
                wait=svc.wait,
                primary_attempts=cfg.primary_attempts,
                fallback_attempts=cfg.fallback_attempts,
                cooldown_s=cfg.cooldown_s,
            )
        except ProviderUnavailable as e:
            raise HTTPException(status_code=502, detail=str(e)) from e
        return outcome.to_dict()

    @router.post("/aladin-search")
    def aladin_search(request: Request, body: AladinSearchRequest) -> Dict[str, Any]:
        query = body.query.strip() if isinstance(body.query, str) else ""
        if len(query) < 2:
            raise HTTPException(status_code=400, detail="query must be at least 2 characters")
        svc = _services(request)
        try:
            client = svc.aladin()
        except MissingConfiguration as e:
            raise HTTPException(status_code=500, detail=str(e)) from e
        try:
            books, error = client.search_xml(
                query,
                query_type=body.queryType,
                max_results=body.maxResults,
                start=body.start,
            )
        except ProviderUnavailable as e:
            raise HTTPException(status_code=502, detail=str(e)) from e
        if error is not None:
            raise HTTPException(status_code=400, detail=error.to_dict())
        if not books:
            raise HTTPException(status_code=404, detail="no books found")
        return {"books": books, "totalResults": len(books)}

    @router.get("/korlib")
    def korlib_search(
        request: Request,
        q: str = Query(default=""),
        provider: str = Query(default="auto"),
        page: int = Query(default=1, ge=1),
        size: int = Query(default=10, ge=1, le=100),
    ) -> Dict[str, Any]:
        if provider not in PROVIDERS:
            raise HTTPException(status_code=400, detail=f"provider must be one of {', '.join(PROVIDERS)}")
        svc = _services(request)
        try:
            items = svc.korlib().search(q, provider=provider, page=page, size=size)
        except InvalidIdentifier as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except (MissingConfiguration, ProviderUnavailable) as e:
            raise HTTPException(status_code=500, detail=str(e)) from e
        return {"provider": provider, "items": [it.to_dict() for it in items]}

    @router.get("/facets")
    def facets(request: Request) -> Dict[str, Any]:
        values = extract_facet_values(_services(request).books())
        out: Dict[str, Any] = values.to_dict()
        out["tabs"] = {t: tab_values(values, t) for t in FACET_TYPES if t != FACET_ALL}
        return out

    @router.get("/graph")
    def graph(request: Request, facet: str = Query(default=FACET_ALL)) -> Dict[str, Any]:
        if facet not in FACET_TYPES:
            raise HTTPException(status_code=400, detail=f"facet must be one of {', '.join(FACET_TYPES)}")
        return build_graph(_services(request).books(), facet)

    return router


def create_app(
    config: Optional[AppConfig] = None,
    *,
    store: Optional[CatalogStore] = None,
    aladin: Optional[AladinClient] = None,
    korlib: Optional[KorLibClient] = None,
    remote: Optional[RemoteCatalog] = None,
    wait: Callable[[float], None] = time.sleep,
) -> FastAPI:
    config = config or AppConfig.from_env()
    app = FastAPI(title="bookmap")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_origin_regex=VERCEL_PREVIEW_REGEX if config.allow_vercel_preview else None,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    app.state.services = Services(
        config,
        store=store,
        aladin=aladin,
        korlib=korlib,
        remote=remote,
        wait=wait,
    )
    app.include_router(build_router())
    logger.debug("api ready | origins=%s | vercel_preview=%s", config.allowed_origins, config.allow_vercel_preview)
    return app


app = create_app()
