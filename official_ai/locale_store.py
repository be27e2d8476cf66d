from __future__ import annotations

"""
Locale resolution.

Two entry points decide which :class:`~official_ai.i18n.Locale` to
render:

* :func:`resolve_request_locale` runs per HTTP request on the server.
  Precedence is the ``locale`` cookie, then the ``Accept-Language``
  header (highest quality first), then the default locale.
* :class:`LocaleStore` lives for one browser session.  It resolves from
  local storage, then the cookie (which the server may have set before
  any client-side write), then the browser language, then the default.
  :meth:`LocaleStore.set_locale` is the only way to change the active
  locale: it persists to storage, mirrors to the cookie and notifies
  every subscribed listener synchronously.

Malformed input (cookie strings, header entries, broken storage) is
never an error here; it is logged at debug level and resolution moves
on to the next source.  Every path ends in a member of the closed set.
"""

import math
from dataclasses import dataclass, field
from http.cookies import SimpleCookie
from typing import Any, Callable, Dict, List, Mapping, MutableMapping, Optional, Tuple
from urllib.parse import unquote

from fastapi import Request
from loguru import logger

from .config import (
    LOCALE_CHANGE_EVENT,
    LOCALE_COOKIE_MAX_AGE,
    LOCALE_COOKIE_NAME,
    LOCALE_COOKIE_PATH,
    LOCALE_COOKIE_SAMESITE,
    LOCALE_STORAGE_KEY,
)
from .i18n import DEFAULT_LOCALE, PRIMARY_LOCALE, SECONDARY_LOCALE, Locale


# ---------------------------
# Header parsing
# ---------------------------

def parse_cookie_header(header: Optional[str]) -> Dict[str, str]:
    """
    Parse a ``Cookie`` header (or ``document.cookie`` string).

    Entries without ``=`` and entries whose name or value is not valid
    percent-encoded UTF-8 are skipped.  A repeated name keeps the last
    value.
    """
    cookies: Dict[str, str] = {}
    if not header:
        return cookies
    for chunk in header.split(";"):
        part = chunk.strip()
        if not part or "=" not in part:
            continue
        raw_name, raw_value = part.split("=", 1)
        try:
            name = unquote(raw_name.strip(), errors="strict")
            value = unquote(raw_value.strip(), errors="strict")
        except UnicodeDecodeError:
            logger.debug("Skipping undecodable cookie entry: {!r}", part)
            continue
        if name:
            cookies[name] = value
    return cookies


def _parse_weight(params: List[str]) -> float:
    for param in params:
        name, sep, raw = param.strip().partition("=")
        if not sep or name.strip().lower() != "q":
            continue
        try:
            weight = float(raw.strip())
        except ValueError:
            return 1.0
        return weight if math.isfinite(weight) else 1.0
    return 1.0


def parse_accept_language(header: Optional[str]) -> List[Tuple[str, float]]:
    """
    Split an ``Accept-Language`` value into ``(tag, weight)`` pairs sorted
    by descending weight.  Equal weights keep header order.  A missing or
    unparsable weight counts as ``1.0``.
    """
    if not header:
        return []
    entries: List[Tuple[str, float]] = []
    for chunk in header.split(","):
        tag, *params = chunk.split(";")
        tag = tag.strip()
        if not tag:
            continue
        entries.append((tag, _parse_weight(params)))
    entries.sort(key=lambda e: -e[1])
    return entries


def match_language_tag(tag: Optional[str]) -> Optional[Locale]:
    """Case-insensitive prefix match against the primary, then secondary code."""
    if not tag:
        return None
    lowered = tag.strip().lower()
    if lowered.startswith(PRIMARY_LOCALE.value):
        return PRIMARY_LOCALE
    if lowered.startswith(SECONDARY_LOCALE.value):
        return SECONDARY_LOCALE
    return None


# ---------------------------
# Server-side resolution
# ---------------------------

def _locale_from_cookie_header(header: Optional[str]) -> Optional[Locale]:
    return Locale.parse(parse_cookie_header(header).get(LOCALE_COOKIE_NAME))


def _locale_from_accept_language(header: Optional[str]) -> Optional[Locale]:
    for tag, _weight in parse_accept_language(header):
        loc = match_language_tag(tag)
        if loc is not None:
            return loc
    return None


def resolve_request_locale(headers: Optional[Mapping[str, str]]) -> Locale:
    """
    Pick the locale for one request from its ``cookie`` and
    ``accept-language`` headers.
    """
    try:
        loc = _locale_from_cookie_header(headers.get("cookie") if headers else None)
        if loc is not None:
            return loc
    except Exception as e:
        logger.debug("Ignoring unusable cookie header: {}", e)

    try:
        loc = _locale_from_accept_language(headers.get("accept-language") if headers else None)
        if loc is not None:
            return loc
    except Exception as e:
        logger.debug("Ignoring unusable accept-language header: {}", e)

    return DEFAULT_LOCALE


def get_request_locale(request: Request) -> Locale:
    """FastAPI dependency."""
    return resolve_request_locale(request.headers)


# ---------------------------
# Client-side primitives
# ---------------------------

def serialize_cookie(
    name: str,
    value: str,
    *,
    path: str = LOCALE_COOKIE_PATH,
    max_age: int = LOCALE_COOKIE_MAX_AGE,
    samesite: str = LOCALE_COOKIE_SAMESITE,
) -> str:
    jar: SimpleCookie = SimpleCookie()
    jar[name] = value
    morsel = jar[name]
    morsel["path"] = path
    morsel["max-age"] = max_age
    morsel["samesite"] = samesite
    return morsel.OutputString()


class DocumentCookies:
    """
    Key-value view over a ``document.cookie`` style string.

    Reads go through :func:`parse_cookie_header`.  Writes update the
    visible values and are kept, serialized, in :attr:`written` so the
    attributes sent to the browser can be inspected.
    """

    def __init__(self, raw: str = ""):
        self._raw = raw
        self._overrides: Dict[str, str] = {}
        self.written: List[str] = []

    def get(self, name: str) -> Optional[str]:
        if name in self._overrides:
            return self._overrides[name]
        return parse_cookie_header(self._raw).get(name)

    def set(self, name: str, value: str, **attrs: Any) -> None:
        self.written.append(serialize_cookie(name, value, **attrs))
        self._overrides[name] = value

    def __str__(self) -> str:
        merged = parse_cookie_header(self._raw)
        merged.update(self._overrides)
        return "; ".join(f"{k}={v}" for k, v in merged.items())


@dataclass
class BrowserEnvironment:
    """What the client-side store can see of the browser."""

    local_storage: MutableMapping[str, str] = field(default_factory=dict)
    cookies: DocumentCookies = field(default_factory=DocumentCookies)
    language: Optional[str] = None


@dataclass(frozen=True)
class LocaleChangeEvent:
    locale: Locale
    type: str = LOCALE_CHANGE_EVENT

    @property
    def detail(self) -> Dict[str, str]:
        return {"locale": self.locale.value}


LocaleListener = Callable[[LocaleChangeEvent], None]


# ---------------------------
# Client-side store
# ---------------------------

class LocaleStore:
    """
    Per-session locale state with explicit change listeners.

    ``environment=None`` stands for rendering without a browser (static
    pre-rendering): resolution returns the default locale and
    :meth:`set_locale` is a no-op.
    """

    def __init__(self, environment: Optional[BrowserEnvironment] = None):
        self._env = environment
        self._listeners: List[LocaleListener] = []
        self._current: Optional[Locale] = None

    @property
    def current(self) -> Locale:
        if self._current is None:
            self._current = self.resolve_client()
        return self._current

    def resolve_client(self) -> Locale:
        env = self._env
        if env is None:
            return DEFAULT_LOCALE

        try:
            saved = Locale.parse(env.local_storage.get(LOCALE_STORAGE_KEY))
            if saved is not None:
                return saved
        except Exception as e:
            logger.debug("Local storage unavailable: {}", e)

        try:
            from_cookie = Locale.parse(env.cookies.get(LOCALE_COOKIE_NAME))
            if from_cookie is not None:
                self._write_storage(from_cookie)
                return from_cookie
        except Exception as e:
            logger.debug("Cookie unavailable: {}", e)

        try:
            loc = match_language_tag(env.language)
            if loc is not None:
                return loc
        except Exception as e:
            logger.debug("Browser language unavailable: {}", e)

        return DEFAULT_LOCALE

    def set_locale(self, locale: Any) -> bool:
        """
        Make ``locale`` the active locale.

        Values outside the closed set, and any call without a browser
        environment, are ignored (returns ``False``).
        """
        if self._env is None:
            logger.debug("No browser environment; ignoring locale change to {!r}", locale)
            return False
        loc = Locale.parse(locale)
        if loc is None:
            logger.debug("Ignoring unsupported locale {!r}", locale)
            return False

        self._write_storage(loc)
        try:
            self._env.cookies.set(
                LOCALE_COOKIE_NAME,
                loc.value,
                path=LOCALE_COOKIE_PATH,
                max_age=LOCALE_COOKIE_MAX_AGE,
                samesite=LOCALE_COOKIE_SAMESITE,
            )
        except Exception as e:
            logger.warning("Could not write locale cookie: {}", e)

        self._current = loc
        self._notify(LocaleChangeEvent(locale=loc))
        return True

    # listeners

    def subscribe(self, listener: LocaleListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unregisters it."""
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: LocaleListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _notify(self, event: LocaleChangeEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Locale listener {!r} failed", listener)

    def _write_storage(self, loc: Locale) -> None:
        if self._env is None:
            return
        try:
            self._env.local_storage[LOCALE_STORAGE_KEY] = loc.value
        except Exception as e:
            logger.warning("Could not persist locale to local storage: {}", e)
