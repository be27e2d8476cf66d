from __future__ import annotations

import asyncio
import re

import pytest

from official_ai.config import ToolRecord
from official_ai.search_manager import EngineUnavailableError, SearchIndexManager, SearchState


def _loader_for(engine, calls=None, gate=None, failures=0):
    state = {"failures": failures}

    async def loader():
        if calls is not None:
            calls.append(1)
        if gate is not None:
            await gate.wait()
        if state["failures"] > 0:
            state["failures"] -= 1
            raise ImportError("no engine here")
        return engine

    return loader


# ---------------------------
# With the real engine
# ---------------------------

@pytest.mark.asyncio
async def test_prefix_query_matches_only_that_record():
    tools = [
        ToolRecord(name="Alpha", description="x", url="https://a.example"),
        ToolRecord(name="Beta", description="y", url="https://b.example"),
    ]
    manager = SearchIndexManager(tools)
    assert await manager.init() is True

    results = manager.search("alp")
    assert [t.name for t in results] == ["Alpha"]


@pytest.mark.asyncio
async def test_shared_id_is_returned_once():
    tools = [
        ToolRecord(id="t1", name="Alpha One", description="", url="https://a.example/1"),
        ToolRecord(id="t1", name="Alpha Two", description="", url="https://a.example/2"),
        ToolRecord(id="t2", name="Gamma", description="", url="https://g.example"),
    ]
    manager = SearchIndexManager(tools)
    await manager.init()

    results = manager.search("alpha")
    assert [t.name for t in results] == ["Alpha One"]


@pytest.mark.asyncio
async def test_name_is_identity_without_id():
    tools = [
        ToolRecord(name="Suno", description="music", url="https://suno.com/"),
        ToolRecord(name="Suno", description="music mirror", url="https://mirror.example/"),
    ]
    manager = SearchIndexManager(tools)
    await manager.init()
    assert len(manager.search("suno")) == 1


@pytest.mark.asyncio
async def test_limit_and_uniqueness(tools):
    manager = SearchIndexManager(tools * 3)
    await manager.init()

    for limit in (1, 2, 3, 8):
        results = manager.search("a", limit=limit)
        assert len(results) <= limit
        identities = [t.identity for t in results]
        assert len(identities) == len(set(identities))


# ---------------------------
# State machine (fake engine)
# ---------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["", " ", "\t\n  "])
async def test_blank_query_is_empty_regardless_of_readiness(tools, fake_engine, query):
    manager = SearchIndexManager(tools, engine_loader=_loader_for(fake_engine))
    assert manager.search(query) == []
    await manager.init()
    assert manager.search(query) == []


def test_search_before_init_is_empty(tools, fake_engine):
    manager = SearchIndexManager(tools, engine_loader=_loader_for(fake_engine))
    assert manager.state is SearchState.UNLOADED
    assert manager.search("chat") == []


@pytest.mark.asyncio
async def test_init_moves_to_ready(tools, fake_engine):
    manager = SearchIndexManager(tools, engine_loader=_loader_for(fake_engine))
    assert await manager.init() is True
    assert manager.state is SearchState.READY
    assert manager.is_ready
    assert [t.name for t in manager.search("claude")] == ["Claude"]


@pytest.mark.asyncio
async def test_concurrent_init_loads_once(tools, fake_engine):
    calls = []
    gate = asyncio.Event()
    manager = SearchIndexManager(tools, engine_loader=_loader_for(fake_engine, calls, gate))

    pending = [asyncio.ensure_future(manager.init()) for _ in range(5)]
    for _ in range(5):
        await asyncio.sleep(0)
    assert manager.state is SearchState.LOADING
    gate.set()

    assert await asyncio.gather(*pending) == [True] * 5
    assert len(calls) == 1
    assert fake_engine.builds == 1


@pytest.mark.asyncio
async def test_timed_out_waiter_does_not_cancel_shared_load(tools, fake_engine):
    calls = []
    gate = asyncio.Event()
    manager = SearchIndexManager(tools, engine_loader=_loader_for(fake_engine, calls, gate))

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(manager.init(), 0.01)

    gate.set()
    assert await manager.wait_for_init() is True
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_failed_init_can_retry(tools, fake_engine):
    calls = []
    manager = SearchIndexManager(tools, engine_loader=_loader_for(fake_engine, calls, failures=1))

    assert await manager.init() is False
    assert manager.state is SearchState.FAILED
    assert manager.search("chat") == []

    assert await manager.init() is True
    assert manager.state is SearchState.READY
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_load_engine_raises_unavailable(tools):
    manager = SearchIndexManager(tools, engine_loader=_loader_for(None))
    with pytest.raises(EngineUnavailableError):
        await manager.load_engine()


@pytest.mark.asyncio
async def test_load_engine_is_memoized(tools, fake_engine):
    calls = []
    manager = SearchIndexManager(tools, engine_loader=_loader_for(fake_engine, calls))
    first = await manager.load_engine()
    second = await manager.load_engine()
    assert first is second is fake_engine
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_missing_engine_module_fails_softly(tools):
    from official_ai.fuzzy_engine import load_engine_module

    async def loader():
        return await load_engine_module("definitely_not_an_installed_engine")

    manager = SearchIndexManager(tools, engine_loader=loader)
    assert await manager.init() is False
    assert manager.state is SearchState.FAILED


@pytest.mark.asyncio
async def test_engine_query_error_returns_empty(tools, fake_engine):
    def explode(index, text, limit):
        raise RuntimeError("engine crashed")

    fake_engine.query = explode
    manager = SearchIndexManager(tools, engine_loader=_loader_for(fake_engine))
    await manager.init()
    assert manager.search("chat") == []


# ---------------------------
# highlight
# ---------------------------

class TestHighlight:
    def test_wraps_case_insensitive_matches(self):
        out = SearchIndexManager.highlight("ChatGPT chats", "chat")
        assert out == '<span class="highlight">Chat</span>GPT <span class="highlight">chat</span>s'

    def test_empty_query_only_escapes(self):
        assert SearchIndexManager.highlight("a < b & c", "") == "a &lt; b &amp; c"

    def test_query_with_markup(self):
        out = SearchIndexManager.highlight("a<b", "<")
        assert out == 'a<span class="highlight">&lt;</span>b'

    def test_query_never_matches_inside_entities(self):
        assert SearchIndexManager.highlight("x & y", "amp") == "x &amp; y"

    def test_regex_characters_are_literal(self):
        out = SearchIndexManager.highlight("C++ (beta)", "+ (")
        assert out == 'C+<span class="highlight">+ (</span>beta)'

    @pytest.mark.parametrize("text, query", [
        ("<script>alert(1)</script>", "script"),
        ("Tom & Jerry <3", "&"),
        ("AT&T", "t&t"),
        ("<<&&>>", "&>"),
        ("plain", "zzz"),
    ])
    def test_output_is_safe(self, text, query):
        out = SearchIndexManager.highlight(text, query)
        body = out.replace('<span class="highlight">', "").replace("</span>", "")
        assert "<" not in body
        assert re.search(r"&(?!amp;|lt;|gt;)", body) is None


@pytest.mark.asyncio
async def test_wait_for_init_when_ready_skips_loader(tools, fake_engine):
    calls = []
    manager = SearchIndexManager(tools, engine_loader=_loader_for(fake_engine, calls))
    assert await manager.init() is True

    assert await manager.wait_for_init() is True
    assert await manager.wait_for_init() is True
    assert len(calls) == 1
    assert fake_engine.builds == 1
