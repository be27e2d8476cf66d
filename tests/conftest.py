from __future__ import annotations

import sys
from typing import List

import pytest
from loguru import logger

from official_ai.config import ToolRecord


class FakeHit:
    def __init__(self, item: ToolRecord, score: float = 0.0):
        self.item = item
        self.score = score


class FakeEngine:
    """Substring matcher with the engine's ``build``/``query`` shape."""

    def __init__(self):
        self.builds = 0

    def build(self, items, keys, threshold):
        self.builds += 1
        return list(items)

    def query(self, index, text, limit):
        needle = text.lower()
        hits = [FakeHit(item) for item in index if needle in item.name.lower() or needle in item.description.lower()]
        return hits[:limit]


@pytest.fixture
def tools() -> List[ToolRecord]:
    return [
        ToolRecord(id="chatgpt", name="ChatGPT", description="Conversational assistant by OpenAI", url="https://chatgpt.com/"),
        ToolRecord(id="claude", name="Claude", description="AI assistant by Anthropic", url="https://claude.ai/"),
        ToolRecord(id="midjourney", name="Midjourney", description="Text-to-image generation", url="https://www.midjourney.com/"),
        ToolRecord(name="Suno", description="AI music <generation> & songs", url="https://suno.com/"),
    ]


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    # tests that configure logging leave the sink on a captured stream
    logger.remove()
    logger.add(sys.__stderr__, level="INFO")
