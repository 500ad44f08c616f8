from __future__ import annotations

import asyncio

import pytest

from cowork.client.partial_output import (
    PartialOutputAccumulator,
    PartialPhase,
    extract_delta_text,
)


def _delta(text: str) -> dict:
    return {"type": "content_block_delta", "delta": {"type": "text_delta", "text": text}}


def test_extract_delta_uses_type_prefix_as_field() -> None:
    assert extract_delta_text(_delta("abc")) == "abc"
    thinking = {"type": "content_block_delta", "delta": {"type": "thinking_delta", "thinking": "hmm"}}
    assert extract_delta_text(thinking) == "hmm"


@pytest.mark.parametrize("event", [
    None,
    {},
    {"delta": None},
    {"delta": {"type": "text_delta"}},
    {"delta": {"type": "input_json_delta", "partial_json": "{"}},
    {"delta": {"type": "text_delta", "text": 42}},
])
def test_malformed_delta_yields_empty_text(event) -> None:
    assert extract_delta_text(event) == ""


def test_deltas_concatenate_in_arrival_order() -> None:
    acc = PartialOutputAccumulator()
    acc.handle_stream_event({"type": "content_block_start"})
    for piece in ("Hel", "lo", ", ", "world"):
        acc.handle_stream_event(_delta(piece))
    assert acc.buffer == "Hello, world"
    assert acc.visible
    assert acc.phase is PartialPhase.ACCUMULATING


def test_block_start_resets_buffer() -> None:
    acc = PartialOutputAccumulator()
    acc.block_start()
    acc.block_delta("old")
    acc.block_start()
    assert acc.buffer == ""


@pytest.mark.asyncio
async def test_stop_hides_then_clears_once_after_delay() -> None:
    acc = PartialOutputAccumulator(settle_delay=0.05)
    states = []
    acc.subscribe(states.append)

    acc.block_start()
    acc.block_delta("done text")
    acc.block_stop()
    assert acc.visible is False
    assert acc.buffer == "done text"
    assert acc.phase is PartialPhase.SETTLING

    await asyncio.sleep(0.01)
    assert acc.buffer == "done text"

    await asyncio.sleep(0.15)
    assert acc.buffer == ""
    assert acc.phase is PartialPhase.IDLE
    cleared = [s for s in states if s.phase is PartialPhase.IDLE]
    assert len(cleared) == 1


@pytest.mark.asyncio
async def test_new_block_preempts_pending_clear() -> None:
    acc = PartialOutputAccumulator(settle_delay=0.05)
    acc.block_start()
    acc.block_delta("first")
    acc.block_stop()

    acc.block_start()
    acc.block_delta("second")
    await asyncio.sleep(0.15)

    assert acc.buffer == "second"
    assert acc.visible
    assert acc.phase is PartialPhase.ACCUMULATING


@pytest.mark.asyncio
async def test_reset_cancels_settle() -> None:
    acc = PartialOutputAccumulator(settle_delay=0.05)
    states = []
    acc.block_start()
    acc.block_delta("x")
    acc.block_stop()
    acc.reset()
    acc.subscribe(states.append)
    await asyncio.sleep(0.15)
    assert acc.buffer == ""
    assert states == []
