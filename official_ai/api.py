from __future__ import annotations

"""
FastAPI application for the Official AI tools directory.

- Every endpoint renders in the request locale (``locale`` cookie, then
  ``Accept-Language``, then Chinese)
- ``POST /api/locale`` is the server-side counterpart of
  ``LocaleStore.set_locale``: it writes the one-year ``locale`` cookie
- Search never fails the request; while the index is not ready the
  result is simply empty
"""

import asyncio
import math
from contextlib import asynccontextmanager
from typing import Callable, List, Optional, Sequence

from fastapi import Depends, FastAPI, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .catalog import load_tools
from .config import (
    FUZZY_SEARCH_LIMIT,
    ITEMS_PER_PAGE,
    LOCALE_COOKIE_MAX_AGE,
    LOCALE_COOKIE_NAME,
    LOCALE_COOKIE_PATH,
    LOCALE_COOKIE_SAMESITE,
    SEARCH_INIT_TIMEOUT,
    EmptyState,
    HealthResponse,
    LocaleRequest,
    LocaleResponse,
    SearchResponse,
    SearchSuggestion,
    ToolListResponse,
    ToolRecord,
    configure_logging,
)
from .i18n import Locale, get_translations, lookup
from .locale_store import get_request_locale
from .search_manager import EngineLoader, SearchIndexManager

# =============================================================================
# Helpers
# =============================================================================

def _parse_page(raw: Optional[str]) -> int:
    try:
        page = int(str(raw).strip())
    except (TypeError, ValueError):
        return 1
    return page if page > 0 else 1


def paginate(items: Sequence[ToolRecord], page: int, per_page: int = ITEMS_PER_PAGE):
    """Slice ``items`` for ``page``; out-of-range pages clamp to ``[1, last]``."""
    per_page = max(1, per_page)
    total_pages = max(1, math.ceil(len(items) / per_page))
    page = min(max(page, 1), total_pages)
    start = (page - 1) * per_page
    return list(items[start:start + per_page]), page, total_pages


def _empty_state(locale: Locale) -> EmptyState:
    return EmptyState(
        message=lookup("emptyState.message", locale),
        description=lookup("emptyState.description", locale),
    )


async def _ensure_search(manager: SearchIndexManager) -> None:
    if manager.is_ready:
        return
    try:
        await asyncio.wait_for(manager.wait_for_init(), SEARCH_INIT_TIMEOUT)
    except asyncio.TimeoutError:
        logger.warning("Search index not ready after {}s; serving empty results", SEARCH_INIT_TIMEOUT)


# =============================================================================
# FastAPI app + startup
# =============================================================================

def create_app(
    tools: Optional[List[ToolRecord]] = None,
    engine_loader: Optional[EngineLoader] = None,
    tools_loader: Callable[[], List[ToolRecord]] = load_tools,
    log_level: Optional[str] = None,
) -> FastAPI:
    """
    Build the application.  ``tools`` and ``engine_loader`` replace the
    configured dataset and fuzzy engine (tests pass both).  The stderr
    log sink is reset to ``OFFICIAL_AI_LOG_LEVEL`` unless ``log_level`` is given.
    """
    configure_logging(log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting app warmup...")
        catalog = tools if tools is not None else tools_loader()
        logger.info("Loaded tool catalog with {} rows", len(catalog))
        manager = SearchIndexManager(catalog, engine_loader=engine_loader)
        app.state.search = manager
        if not await manager.init():
            logger.warning("Warmup partial failure: search disabled until the engine loads")
        logger.info("Warmup complete.")
        yield
        app.state.search = None

    app = FastAPI(title="Official AI", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.search = None

    def _manager() -> SearchIndexManager:
        manager = app.state.search
        if manager is None:
            raise HTTPException(status_code=500, detail="Catalog not loaded")
        return manager

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        manager = app.state.search
        if manager is None:
            return HealthResponse(status="starting", search="unloaded")
        return HealthResponse(status="healthy", search=manager.state.value, tools=len(manager.tools))

    @app.get("/api/tools", response_model=ToolListResponse)
    async def list_tools(
        page: Optional[str] = None,
        q: str = "",
        locale: Locale = Depends(get_request_locale),
    ) -> ToolListResponse:
        manager = _manager()
        query = q.strip()
        if query:
            await _ensure_search(manager)
            source = manager.search(query, limit=max(len(manager.tools), 1))
        else:
            source = manager.tools

        items, current, total_pages = paginate(source, _parse_page(page))
        return ToolListResponse(
            locale=locale.value,
            query=query,
            page=current,
            total_pages=total_pages,
            total=len(source),
            stats_label=lookup("page.statsSearch" if query else "page.stats", locale),
            items_label=lookup("page.items", locale),
            items=items,
            empty_state=None if source else _empty_state(locale),
        )

    @app.get("/api/search", response_model=SearchResponse)
    async def search(
        q: str = "",
        limit: int = Query(FUZZY_SEARCH_LIMIT, ge=1, le=50),
        locale: Locale = Depends(get_request_locale),
    ) -> SearchResponse:
        manager = _manager()
        query = q.strip()
        results: List[SearchSuggestion] = []
        if query:
            await _ensure_search(manager)
            for tool in manager.search(query, limit=limit):
                results.append(
                    SearchSuggestion(
                        id=tool.id,
                        name=tool.name,
                        description=tool.description,
                        url=tool.url,
                        name_html=manager.highlight(tool.name, query),
                        description_html=manager.highlight(tool.description, query),
                    )
                )
        message = None
        if query and not results:
            message = lookup("search.noResults", locale)
        return SearchResponse(query=query, locale=locale.value, results=results, message=message)

    @app.get("/api/locale", response_model=LocaleResponse)
    def get_locale(locale: Locale = Depends(get_request_locale)) -> LocaleResponse:
        return LocaleResponse(locale=locale.value, html_lang=locale.html_lang)

    @app.post("/api/locale", response_model=LocaleResponse)
    def set_locale(
        req: LocaleRequest,
        response: Response,
        current: Locale = Depends(get_request_locale),
    ) -> LocaleResponse:
        loc = Locale.parse(req.locale)
        if loc is None:
            logger.debug("Ignoring unsupported locale {!r}", req.locale)
            return LocaleResponse(locale=current.value, html_lang=current.html_lang)
        response.set_cookie(
            LOCALE_COOKIE_NAME,
            loc.value,
            max_age=LOCALE_COOKIE_MAX_AGE,
            path=LOCALE_COOKIE_PATH,
            samesite=LOCALE_COOKIE_SAMESITE.lower(),
        )
        return LocaleResponse(locale=loc.value, html_lang=loc.html_lang, changed=loc is not current)

    @app.get("/api/i18n")
    def translations(locale: Locale = Depends(get_request_locale)) -> dict:
        return {"locale": locale.value, "translations": get_translations(locale)}

    @app.get("/api/i18n/{code}")
    def translations_for(code: str) -> dict:
        loc = Locale.parse(code)
        if loc is None:
            raise HTTPException(status_code=422, detail=f"Unsupported locale: {code}")
        return {"locale": loc.value, "translations": get_translations(loc)}

    return app


app = create_app()
