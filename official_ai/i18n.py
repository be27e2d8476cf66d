from __future__ import annotations

"""
UI label translation.

The directory renders a fixed set of labels in two languages.  Each
language has one nested JSON table under ``official_ai/locales``; keys
are addressed with dotted paths such as ``"search.noResults"``.  Tables
are read once on import and treated as read-only afterwards.

Lookups never fail: a missing path, a path that stops on a sub-table,
or an unknown locale all yield the key itself, so a page always shows
*something* and a missing label is easy to spot.

Example::

    from official_ai.i18n import Locale, lookup
    lookup("search.placeholder", Locale.EN)   # -> "Search Official AI tools..."
    lookup("search.nope", Locale.EN)          # -> "search.nope"
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set

from loguru import logger

from .config import LOCALES_DIR


class Locale(str, Enum):
    """Closed set of UI languages.  ``ZH`` is primary and the default."""

    ZH = "zh"
    EN = "en"

    @classmethod
    def parse(cls, value: Any) -> Optional["Locale"]:
        """Exact-match a code (or member) to the closed set, else ``None``."""
        if isinstance(value, Locale):
            return value
        if not isinstance(value, str):
            return None
        for member in cls:
            if member.value == value:
                return member
        return None

    @property
    def html_lang(self) -> str:
        return "zh-CN" if self is Locale.ZH else "en"


PRIMARY_LOCALE = Locale.ZH
SECONDARY_LOCALE = Locale.EN
DEFAULT_LOCALE = PRIMARY_LOCALE

TranslationTable = Dict[Locale, Dict[str, Any]]


def load_translations(locales_dir: Path = LOCALES_DIR) -> TranslationTable:
    """Read ``<code>.json`` for every locale.  A missing file yields an empty table."""
    tables: TranslationTable = {}
    for loc in Locale:
        path = locales_dir / f"{loc.value}.json"
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.warning("Locale file not found: {}", path)
            data = {}
        tables[loc] = data if isinstance(data, dict) else {}
        logger.debug("Loaded {} top-level sections for '{}'", len(tables[loc]), loc.value)
    return tables


TRANSLATIONS: TranslationTable = load_translations()


def lookup(key: str, locale: Any, table: Optional[Mapping[Locale, Any]] = None) -> str:
    """
    Resolve a dotted ``key`` for ``locale``.

    Returns the translated string, or ``key`` when the path is missing,
    passes through a non-mapping value, or ends on anything but a string.
    """
    key_text = key if isinstance(key, str) else str(key)
    tables = TRANSLATIONS if table is None else table
    loc = Locale.parse(locale)
    if loc is None:
        return key_text

    value: Any = tables.get(loc)
    for segment in key_text.split("."):
        if not isinstance(value, Mapping):
            return key_text
        value = value.get(segment)

    return value if isinstance(value, str) else key_text


def translate(key: str, locale: Any, **kwargs: Any) -> str:
    """:func:`lookup` plus ``str.format`` interpolation of ``kwargs``."""
    text = lookup(key, locale)
    if not kwargs:
        return text
    try:
        return text.format(**kwargs)
    except (KeyError, IndexError, ValueError) as exc:
        logger.warning("Format error for key '{}': {}", key, exc)
        return text


def get_translations(locale: Any) -> Dict[str, Any]:
    """Whole table for ``locale`` (primary table for unknown values)."""
    loc = Locale.parse(locale) or DEFAULT_LOCALE
    return TRANSLATIONS.get(loc, {})


# ---------------------------
# Table audits
# ---------------------------

def flatten_keys(table: Mapping[str, Any], prefix: str = "") -> Set[str]:
    """All dotted leaf paths of a nested table."""
    keys: Set[str] = set()
    for k, v in table.items():
        full = f"{prefix}.{k}" if prefix else str(k)
        if isinstance(v, Mapping):
            keys.update(flatten_keys(v, full))
        else:
            keys.add(full)
    return keys


def missing_keys(
    reference: Locale = PRIMARY_LOCALE,
    other: Locale = SECONDARY_LOCALE,
    table: Optional[Mapping[Locale, Any]] = None,
) -> List[str]:
    """Keys present for ``reference`` but absent for ``other``, sorted."""
    tables = TRANSLATIONS if table is None else table
    ref_keys = flatten_keys(tables.get(reference) or {})
    other_keys = flatten_keys(tables.get(other) or {})
    return sorted(ref_keys - other_keys)
