# official_ai/cli.py
"""
Command line for the Official AI tools directory.

    official-ai search "chat" --limit 5
    official-ai translate search.placeholder --locale en
    official-ai locale --cookie "locale=en" --accept-language "zh-CN,zh;q=0.9"
    official-ai serve --port 8000
"""

from __future__ import annotations
import argparse
import asyncio
from typing import List, Optional

from official_ai.catalog import load_tools
from official_ai.config import FUZZY_SEARCH_LIMIT, configure_logging
from official_ai.i18n import DEFAULT_LOCALE, Locale, translate
from official_ai.locale_store import resolve_request_locale
from official_ai.search_manager import SearchIndexManager


def _cmd_search(args: argparse.Namespace) -> int:
    manager = SearchIndexManager(load_tools(args.source))
    if not asyncio.run(manager.init()):
        print("[WARN] search engine unavailable")
        return 1

    results = manager.search(args.query, limit=args.limit)
    if not results:
        print(translate("search.noResults", args.locale))
        return 0
    for i, tool in enumerate(results, 1):
        print(f"{i:>2}. {tool.name}  {tool.url}")
        if tool.description:
            print(f"    {tool.description}")
    return 0


def _cmd_translate(args: argparse.Namespace) -> int:
    print(translate(args.key, args.locale))
    return 0


def _cmd_locale(args: argparse.Namespace) -> int:
    headers = {}
    if args.cookie is not None:
        headers["cookie"] = args.cookie
    if args.accept_language is not None:
        headers["accept-language"] = args.accept_language
    loc = resolve_request_locale(headers)
    print(f"{loc.value} ({loc.html_lang})")
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("official_ai.api:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    locales = [loc.value for loc in Locale]

    ap = argparse.ArgumentParser(prog="official-ai")
    ap.add_argument("--log-level", default=None, help="loguru level (default from OFFICIAL_AI_LOG_LEVEL)")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("search", help="fuzzy search the tool catalog")
    p.add_argument("query")
    p.add_argument("--limit", type=int, default=FUZZY_SEARCH_LIMIT)
    p.add_argument("--source", default=None, help="dataset path or URL")
    p.add_argument("--locale", choices=locales, default=DEFAULT_LOCALE.value)
    p.set_defaults(func=_cmd_search)

    p = sub.add_parser("translate", help="look up a UI label")
    p.add_argument("key")
    p.add_argument("--locale", choices=locales, default=DEFAULT_LOCALE.value)
    p.set_defaults(func=_cmd_translate)

    p = sub.add_parser("locale", help="resolve a locale from request headers")
    p.add_argument("--cookie", default=None)
    p.add_argument("--accept-language", dest="accept_language", default=None)
    p.set_defaults(func=_cmd_locale)

    p = sub.add_parser("serve", help="run the HTTP API")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    p.add_argument("--reload", action="store_true")
    p.set_defaults(func=_cmd_serve)

    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
