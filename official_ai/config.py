"""
Configuration for the Official AI tools directory.
"""

import os
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

# Paths
PACKAGE_DIR = Path(__file__).resolve().parent
DATA_DIR = PACKAGE_DIR / "data"
LOCALES_DIR = PACKAGE_DIR / "locales"
DEFAULT_TOOLS_PATH = DATA_DIR / "tools.json"

# Dataset: a local .json/.csv file or an http(s) URL
TOOLS_SOURCE = os.getenv("OFFICIAL_AI_TOOLS_SOURCE", str(DEFAULT_TOOLS_PATH))

# Listing
ITEMS_PER_PAGE = max(1, int(os.getenv("OFFICIAL_AI_ITEMS_PER_PAGE", "24")))

# Fuzzy search
SEARCH_ENGINE_MODULE = os.getenv("OFFICIAL_AI_SEARCH_ENGINE", "rapidfuzz")
FUZZY_SEARCH_LIMIT = int(os.getenv("OFFICIAL_AI_SEARCH_LIMIT", "8"))
FUZZY_SEARCH_THRESHOLD = 0.3
FUZZY_SEARCH_KEYS: Tuple[str, ...] = ("name", "description")
SEARCH_INIT_TIMEOUT = float(os.getenv("OFFICIAL_AI_SEARCH_INIT_TIMEOUT", "5.0"))
HIGHLIGHT_CLASS = "highlight"

# Locale persistence (cookie + browser storage share the same key)
LOCALE_COOKIE_NAME = "locale"
LOCALE_STORAGE_KEY = "locale"
LOCALE_COOKIE_PATH = "/"
LOCALE_COOKIE_MAX_AGE = 31_536_000  # one year
LOCALE_COOKIE_SAMESITE = "Lax"
LOCALE_CHANGE_EVENT = "localechange"

# Text processing
MAX_INPUT_CHARS = 2_000

# HTTP hardening (remote dataset fetch)
HTTP_CONNECT_TIMEOUT = 3.0
HTTP_READ_TIMEOUT = 7.0
HTTP_MAX_REDIRECTS = 2
HTTP_MAX_BYTES = 2_000_000
HTTP_USER_AGENT = "official-ai-directory/1.0"

# Logging
LOG_LEVEL = os.getenv("OFFICIAL_AI_LOG_LEVEL", "INFO")


def configure_logging(level: Optional[str] = None) -> None:
    """Replace loguru's default sink with a stderr sink at ``level``."""
    level = level or os.getenv("OFFICIAL_AI_LOG_LEVEL", LOG_LEVEL)
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


# Pydantic schemas
class ToolRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    name: str
    description: str = ""
    url: str

    @property
    def identity(self) -> str:
        """De-duplication key: ``id`` when present, otherwise ``name``."""
        return self.id or self.name


class SearchSuggestion(BaseModel):
    id: Optional[str] = None
    name: str
    description: str
    url: str
    name_html: str
    description_html: str


class SearchResponse(BaseModel):
    query: str
    locale: str
    results: List[SearchSuggestion]
    message: Optional[str] = None


class EmptyState(BaseModel):
    message: str
    description: str


class ToolListResponse(BaseModel):
    locale: str
    query: str = ""
    page: int = Field(ge=1)
    total_pages: int = Field(ge=1)
    total: int = Field(ge=0)
    stats_label: str
    items_label: str
    items: List[ToolRecord]
    empty_state: Optional[EmptyState] = None


class LocaleRequest(BaseModel):
    locale: str


class LocaleResponse(BaseModel):
    locale: str
    html_lang: str
    changed: bool = False


class HealthResponse(BaseModel):
    status: str
    search: str
    tools: int = 0
