from __future__ import annotations

import pytest
import rapidfuzz.fuzz
import rapidfuzz.utils

from official_ai.config import ToolRecord
from official_ai.fuzzy_engine import FuzzyEngine, load_engine_module


@pytest.fixture
def engine() -> FuzzyEngine:
    return FuzzyEngine(rapidfuzz)


def _tools(*names):
    return [ToolRecord(name=n, description="", url=f"https://{i}.example") for i, n in enumerate(names)]


def test_build_preprocesses_fields(engine):
    index = engine.build([ToolRecord(name="Chat-GPT!", description="By OpenAI", url="https://x")], ("name", "description"), 0.3)
    assert index.fields == (("chat gpt", "by openai"),)
    assert index.min_similarity == pytest.approx(70.0)
    assert len(index) == 1


def test_scores_and_ordering(engine):
    index = engine.build(_tools("Gemini", "Alpha", "Alphabet"), ("name",), 0.3)
    hits = engine.query(index, "alpha", 10)

    assert [h.item.name for h in hits] == ["Alpha", "Alphabet"]
    assert hits[0].score == pytest.approx(0.0)
    assert all(0.0 <= h.score <= 0.3 for h in hits)


def test_limit_truncates(engine):
    index = engine.build(_tools("Alpha", "Alphabet", "Alphanumeric"), ("name",), 0.3)
    assert len(engine.query(index, "alpha", 2)) == 2
    assert engine.query(index, "alpha", 0) == []


def test_threshold_drops_weak_matches(engine):
    index = engine.build(_tools("Midjourney"), ("name",), 0.3)
    assert engine.query(index, "zzzz", 5) == []


def test_best_key_wins(engine):
    tool = ToolRecord(name="Runway", description="video generation", url="https://runwayml.com")
    index = engine.build([tool], ("name", "description"), 0.3)
    hits = engine.query(index, "video", 5)
    assert [h.item for h in hits] == [tool]


def test_punctuation_only_query_is_empty(engine):
    index = engine.build(_tools("Alpha"), ("name",), 0.3)
    assert engine.query(index, "!!!", 5) == []


@pytest.mark.asyncio
async def test_loader_uses_imported_module():
    loaded = await load_engine_module("rapidfuzz")
    assert isinstance(loaded, FuzzyEngine)
