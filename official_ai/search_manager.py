from __future__ import annotations

"""
Search Index Manager.

Owns the lazily loaded fuzzy engine and the index built from the tool
dataset.  The lifecycle is a small state machine::

    UNLOADED --init()--> LOADING --ok--> READY
                            |
                            +--error--> FAILED --init()--> LOADING ...

Both the engine import and the index build are memoized as a single
``asyncio.Task`` each.  Every concurrent caller awaits the same task
through :func:`asyncio.shield`, so one caller giving up (for instance
via ``asyncio.wait_for``) never cancels the work for the others.  A
failed task is forgotten, and the next call starts over.

:meth:`SearchIndexManager.search` is synchronous and never raises: it
returns an empty list until the index is ready.

Example::

    manager = SearchIndexManager(load_tools())
    await manager.init()
    manager.search("chat", limit=5)
"""

import asyncio
import html
import re
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from loguru import logger

from .config import (
    FUZZY_SEARCH_KEYS,
    FUZZY_SEARCH_LIMIT,
    FUZZY_SEARCH_THRESHOLD,
    HIGHLIGHT_CLASS,
    ToolRecord,
)
from .fuzzy_engine import load_engine_module

EngineLoader = Callable[[], Awaitable[Any]]


class SearchState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class EngineUnavailableError(RuntimeError):
    """The fuzzy engine could not be imported or initialised."""


class SearchIndexManager:
    def __init__(
        self,
        tools: Sequence[ToolRecord],
        *,
        engine_loader: Optional[EngineLoader] = None,
        keys: Sequence[str] = FUZZY_SEARCH_KEYS,
        threshold: float = FUZZY_SEARCH_THRESHOLD,
    ):
        self._tools: List[ToolRecord] = list(tools)
        self._engine_loader: EngineLoader = engine_loader or load_engine_module
        self._keys = tuple(keys)
        self._threshold = threshold

        self._engine: Any = None
        self._engine_task: Optional[asyncio.Future] = None
        self._index: Any = None
        self._init_task: Optional[asyncio.Future] = None
        self._state = SearchState.UNLOADED

    @property
    def state(self) -> SearchState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is SearchState.READY

    @property
    def tools(self) -> List[ToolRecord]:
        return self._tools

    # ---------------------------
    # Engine
    # ---------------------------

    async def load_engine(self) -> Any:
        """
        Return the engine, importing it on first use.

        Raises :class:`EngineUnavailableError` if the import fails.
        """
        if self._engine is not None:
            return self._engine
        if self._engine_task is None:
            self._engine_task = asyncio.ensure_future(self._load_engine_once())
        return await asyncio.shield(self._engine_task)

    async def _load_engine_once(self) -> Any:
        try:
            engine = await self._engine_loader()
        except Exception as e:
            self._engine_task = None
            raise EngineUnavailableError(f"search engine failed to load: {e}") from e
        if engine is None:
            self._engine_task = None
            raise EngineUnavailableError("engine loader returned nothing")
        self._engine = engine
        logger.info("Search engine loaded: {}", type(engine).__name__)
        return engine

    # ---------------------------
    # Index
    # ---------------------------

    async def init(self) -> bool:
        """Build the index once.  ``True`` when ready; never raises."""
        if self._state is SearchState.READY:
            return True
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._init_once())
        return await asyncio.shield(self._init_task)

    async def _init_once(self) -> bool:
        self._state = SearchState.LOADING
        try:
            engine = await self.load_engine()
            self._index = engine.build(self._tools, self._keys, self._threshold)
        except Exception as e:
            logger.warning("Search index unavailable: {}", e)
            self._index = None
            self._state = SearchState.FAILED
            self._init_task = None
            return False
        self._state = SearchState.READY
        logger.info("Search index ready over {} tools", len(self._tools))
        return True

    async def wait_for_init(self) -> bool:
        if self._state is SearchState.READY:
            return True
        return await self.init()

    # ---------------------------
    # Queries
    # ---------------------------

    def search(self, query: str, limit: int = FUZZY_SEARCH_LIMIT) -> List[ToolRecord]:
        """
        Ranked matches for ``query``, at most ``limit``, unique by
        :attr:`ToolRecord.identity` (first ranked occurrence wins).
        """
        if not isinstance(query, str) or not query.strip():
            return []
        if self._state is not SearchState.READY or self._index is None or limit <= 0:
            return []

        try:
            hits = self._engine.query(self._index, query.strip(), limit)
        except Exception:
            logger.exception("Search failed for query {!r}", query)
            return []

        seen = set()
        results: List[ToolRecord] = []
        for hit in hits:
            item = hit.item
            if item.identity in seen:
                continue
            seen.add(item.identity)
            results.append(item)
        return results[:limit]

    @staticmethod
    def highlight(text: str, query: str) -> str:
        """
        HTML-escape ``text`` and wrap each case-insensitive occurrence of
        ``query`` in ``<span class="highlight">``.
        """
        text = text or ""
        if not query:
            return html.escape(text, quote=False)

        # match on the raw text so a query never lands inside an entity
        pattern = re.compile(re.escape(query), re.IGNORECASE)
        parts: List[str] = []
        pos = 0
        for m in pattern.finditer(text):
            parts.append(html.escape(text[pos:m.start()], quote=False))
            parts.append(f'<span class="{HIGHLIGHT_CLASS}">{html.escape(m.group(0), quote=False)}</span>')
            pos = m.end()
        parts.append(html.escape(text[pos:], quote=False))
        return "".join(parts)
