from __future__ import annotations

"""
Fuzzy matching adapter.

The search manager only ever talks to the narrow contract below:

* ``build(items, keys, threshold) -> FuzzyIndex``
* ``query(index, text, limit) -> List[SearchHit]``

:class:`FuzzyEngine` implements it on top of ``rapidfuzz``.  Each item is
scored with ``fuzz.partial_ratio`` against every key field and keeps its
best similarity; items under ``100 * (1 - threshold)`` are dropped.
Scores are reported the other way round (``0.0`` is a perfect match) so
a lower score always means a better hit.

The engine module is heavy enough that it is only imported on first
use, from a worker thread (see :func:`load_engine_module`).
"""

import asyncio
import importlib
import sys
from dataclasses import dataclass
from types import ModuleType
from typing import Any, List, Sequence, Tuple

from loguru import logger

from .config import FUZZY_SEARCH_KEYS, FUZZY_SEARCH_THRESHOLD, SEARCH_ENGINE_MODULE, ToolRecord


@dataclass(frozen=True)
class SearchHit:
    item: ToolRecord
    score: float


@dataclass(frozen=True)
class FuzzyIndex:
    """Pre-processed key fields, one tuple per item, in dataset order."""

    items: Tuple[ToolRecord, ...]
    fields: Tuple[Tuple[str, ...], ...]
    keys: Tuple[str, ...]
    threshold: float

    @property
    def min_similarity(self) -> float:
        return 100.0 * (1.0 - self.threshold)

    def __len__(self) -> int:
        return len(self.items)


class FuzzyEngine:
    """``build``/``query`` over a loaded ``rapidfuzz`` module."""

    def __init__(self, module: ModuleType):
        self._fuzz = module.fuzz
        self._process = module.utils.default_process

    def build(
        self,
        items: Sequence[ToolRecord],
        keys: Sequence[str] = FUZZY_SEARCH_KEYS,
        threshold: float = FUZZY_SEARCH_THRESHOLD,
    ) -> FuzzyIndex:
        fields = tuple(
            tuple(self._process(str(getattr(item, key, "") or "")) for key in keys)
            for item in items
        )
        logger.debug("Built fuzzy index over {} items (keys={})", len(fields), list(keys))
        return FuzzyIndex(
            items=tuple(items),
            fields=fields,
            keys=tuple(keys),
            threshold=threshold,
        )

    def query(self, index: FuzzyIndex, text: str, limit: int) -> List[SearchHit]:
        needle = self._process(text or "")
        if not needle or limit <= 0:
            return []

        cutoff = index.min_similarity
        scored: List[Tuple[float, int]] = []
        for pos, fields in enumerate(index.fields):
            best = 0.0
            for field in fields:
                if not field:
                    continue
                sim = self._fuzz.partial_ratio(needle, field, score_cutoff=cutoff)
                if sim > best:
                    best = sim
            if best >= cutoff and best > 0:
                scored.append((best, pos))

        # stable: equal similarity keeps dataset order
        scored.sort(key=lambda s: -s[0])
        return [
            SearchHit(item=index.items[pos], score=round(1.0 - sim / 100.0, 6))
            for sim, pos in scored[:limit]
        ]


# ---------------------------
# Lazy loading
# ---------------------------

def _import_engine(name: str) -> ModuleType:
    module = importlib.import_module(name)
    # submodules used by the adapter are not guaranteed to be bound on import
    importlib.import_module(f"{name}.fuzz")
    importlib.import_module(f"{name}.utils")
    return module


async def load_engine_module(name: str = SEARCH_ENGINE_MODULE) -> Any:
    """
    Import the engine module off the event loop and wrap it in
    :class:`FuzzyEngine`.  A module that is already imported is used
    directly.
    """
    if name in sys.modules and f"{name}.fuzz" in sys.modules and f"{name}.utils" in sys.modules:
        module = sys.modules[name]
    else:
        logger.info("Importing search engine module '{}'", name)
        module = await asyncio.to_thread(_import_engine, name)
    return FuzzyEngine(module)
