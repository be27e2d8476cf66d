from __future__ import annotations

"""
Loading of the tool dataset.

The directory serves a small, static list of tools that is read once at
startup and never mutated.  The source is either a local ``.json`` /
``.csv`` file or an http(s) URL pointing at a JSON array.  Column names
are mapped to the canonical ``id`` / ``name`` / ``description`` / ``url``
schema, text fields are cleaned, and rows without a URL or name are
dropped.  Duplicates are kept: the same tool may be listed
under several categories upstream, and de-duplication happens per search
on the record identity.
"""

import json
from pathlib import Path
from typing import Dict, List, Optional, Union

import httpx
import pandas as pd
from loguru import logger

from .config import (
    HTTP_CONNECT_TIMEOUT,
    HTTP_MAX_BYTES,
    HTTP_MAX_REDIRECTS,
    HTTP_READ_TIMEOUT,
    HTTP_USER_AGENT,
    TOOLS_SOURCE,
    ToolRecord,
)
from .normalize import basic_clean


# ---------------------------
# Column detection / standardisation
# ---------------------------

COLUMN_CANDIDATES: Dict[str, List[str]] = {
    "id": ["id", "ID", "tool_id", "slug"],
    "name": ["name", "Name", "title", "Title", "tool"],
    "description": ["description", "Description", "desc", "summary", "Summary"],
    "url": ["url", "URL", "link", "Link", "href", "website"],
}

CANONICAL_COLUMNS = ["id", "name", "description", "url"]


def _standardise_columns(df: pd.DataFrame) -> pd.DataFrame:
    col_map: Dict[str, str] = {}
    lower_to_original = {str(c).lower(): c for c in df.columns}

    for canon, candidates in COLUMN_CANDIDATES.items():
        for candidate in candidates:
            if candidate in df.columns:
                col_map[candidate] = canon
                break
            original = lower_to_original.get(candidate.lower())
            if original is not None:
                col_map[original] = canon
                break

    df_std = df.rename(columns=col_map)
    missing = [c for c in ("name", "url") if c not in df_std.columns]
    if missing:
        logger.warning("Tool dataset is missing required columns: {}", missing)
    return df_std


def _clean_id(value) -> Optional[str]:
    cleaned = basic_clean(value)
    return cleaned or None


def normalise_tools_df(df_raw: pd.DataFrame) -> pd.DataFrame:
    """
    Map an arbitrary tool table onto ``id, name, description, url``.

    Every output column holds plain strings; ``id`` is ``None`` where the
    source has no identifier.
    """
    logger.info("Normalising tool dataframe with {} raw rows", len(df_raw))
    df = _standardise_columns(df_raw.copy())

    if "url" not in df.columns or "name" not in df.columns:
        logger.error("No name/url column found; resulting tool list will be empty.")
        return pd.DataFrame(columns=CANONICAL_COLUMNS)

    for col in ("id", "description"):
        if col not in df.columns:
            df[col] = None

    out = pd.DataFrame(
        {
            "id": df["id"].map(_clean_id),
            "name": df["name"].map(basic_clean),
            "description": df["description"].map(basic_clean),
            "url": df["url"].map(basic_clean),
        }
    )
    before = len(out)
    out = out[(out["url"] != "") & (out["name"] != "")].reset_index(drop=True)
    if len(out) < before:
        logger.warning("Dropped {} tool rows without a name or URL", before - len(out))

    logger.info("Tool normalisation complete. Final rows: {}", len(out))
    return out


def records_from_df(df: pd.DataFrame) -> List[ToolRecord]:
    return [
        ToolRecord(
            id=row.id if isinstance(row.id, str) and row.id else None,
            name=row.name,
            description=row.description,
            url=row.url,
        )
        for row in df.itertuples(index=False)
    ]


# ---------------------------
# IO helpers
# ---------------------------

def _is_remote(source: str) -> bool:
    return source.lower().startswith(("http://", "https://"))


def fetch_remote_tools(url: str) -> pd.DataFrame:
    """
    Download a JSON array of tools.

    Raises ``RuntimeError`` on HTTP errors or oversized payloads; the
    dataset is required, so there is nothing sensible to fall back to.
    """
    logger.info("Fetching tool dataset from {}", url)
    with httpx.Client(
        headers={"User-Agent": HTTP_USER_AGENT},
        follow_redirects=True,
        timeout=httpx.Timeout(HTTP_READ_TIMEOUT, connect=HTTP_CONNECT_TIMEOUT),
        max_redirects=HTTP_MAX_REDIRECTS,
    ) as client:
        r = client.get(url)
        if r.status_code >= 400:
            logger.warning("Tool dataset fetch failed with HTTP {}", r.status_code)
            raise RuntimeError(f"HTTP {r.status_code} for {url}")
        if len(r.content) > HTTP_MAX_BYTES:
            logger.warning("Tool dataset exceeds {} bytes", HTTP_MAX_BYTES)
            raise RuntimeError(f"Tool dataset too large ({len(r.content)} bytes) for {url}")
        payload = r.json()
    return _frame_from_payload(payload)


def _frame_from_payload(payload) -> pd.DataFrame:
    # Accept both a bare list and {"tools": [...]}
    if isinstance(payload, dict):
        payload = payload.get("tools", [])
    if not isinstance(payload, list):
        raise ValueError("Tool dataset must be a JSON array of objects")
    return pd.DataFrame.from_records(payload)


def read_local_tools(path: Path) -> pd.DataFrame:
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(path, dtype=str, keep_default_na=False)
    if suffix == ".json":
        with path.open("r", encoding="utf-8") as f:
            return _frame_from_payload(json.load(f))
    raise ValueError(f"Unsupported tool dataset format: {path.suffix}")


def load_tools(source: Union[str, Path, None] = None) -> List[ToolRecord]:
    """
    Load and normalise the tool dataset from ``source``
    (defaults to ``TOOLS_SOURCE``).
    """
    src = str(source) if source is not None else TOOLS_SOURCE
    if _is_remote(src):
        df_raw = fetch_remote_tools(src)
    else:
        logger.info("Loading tool dataset from {}", src)
        df_raw = read_local_tools(Path(src))
    tools = records_from_df(normalise_tools_df(df_raw))
    logger.info("Loaded {} tools", len(tools))
    return tools


def load_tools_from_json(text: str) -> List[ToolRecord]:
    """Parse an in-memory JSON document."""
    df_raw = _frame_from_payload(json.loads(text))
    return records_from_df(normalise_tools_df(df_raw))


if __name__ == "__main__":
    for tool in load_tools()[:10]:
        print(f"{tool.identity}: {tool.url}")
