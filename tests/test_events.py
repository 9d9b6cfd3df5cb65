"""
Tests for phase events and the progress emitter.
"""

import json
from datetime import datetime

import pytest

from core.pipeline.events import Phase, PhaseEvent, ProgressEmitter, utc_now


def test_sse_format():
    event = PhaseEvent(phase=Phase.RESEARCHING, agent="deep-research", content="ZIM: reading")
    sse = event.to_sse()

    assert sse.startswith("data: ")
    assert sse.endswith("\n\n")
    payload = json.loads(sse[len("data: "):])
    assert payload["phase"] == "researching"
    assert payload["agent"] == "deep-research"
    assert payload["content"] == "ZIM: reading"
    assert "timestamp" in payload


def test_optional_fields_omitted():
    payload = PhaseEvent(phase=Phase.STARTING).to_dict()
    assert set(payload) == {"phase", "timestamp"}


def test_timestamps_are_utc_aware():
    assert utc_now().utcoffset().total_seconds() == 0
    stamp = datetime.fromisoformat(PhaseEvent(phase=Phase.STARTING).timestamp)
    assert stamp.tzinfo is not None
    assert stamp.utcoffset().total_seconds() == 0


@pytest.mark.asyncio
async def test_stream_preserves_emission_order():
    emitter = ProgressEmitter()
    emitter.emit(Phase.STARTING, content="one")
    emitter.emit(Phase.RESEARCHING, content="two")
    emitter.emit(Phase.VERDICT, content="three")
    emitter.emit(Phase.COMPLETE, content="{}")

    received = [event async for event in emitter.stream()]

    assert [e.content for e in received] == ["one", "two", "three", "{}"]
    assert list(emitter.events) == received


@pytest.mark.asyncio
async def test_terminal_event_closes_stream():
    emitter = ProgressEmitter()
    emitter.emit(Phase.ERROR, content="Discovery failed")

    assert emitter.closed
    with pytest.raises(RuntimeError):
        emitter.emit(Phase.STARTING)

    received = [event async for event in emitter.stream()]
    assert [e.phase for e in received] == [Phase.ERROR]


@pytest.mark.asyncio
async def test_close_without_terminal_event():
    emitter = ProgressEmitter()
    emitter.emit(Phase.STARTING)
    emitter.close()
    emitter.close()

    received = [event async for event in emitter.stream()]
    assert len(received) == 1
