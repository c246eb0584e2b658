import asyncio

import pytest

from livepanel.interview.services import AnalyzingDebounce


@pytest.mark.asyncio
async def test_fires_once_after_delay():
    fired = []
    debounce = AnalyzingDebounce(fired.append, delay=0.02)

    generation = debounce.arm()
    assert debounce.pending
    await asyncio.sleep(0.08)

    assert fired == [generation]
    assert debounce.is_current(generation)
    assert not debounce.pending


@pytest.mark.asyncio
async def test_cancel_prevents_fire():
    fired = []
    debounce = AnalyzingDebounce(fired.append, delay=0.02)

    generation = debounce.arm()
    debounce.cancel()
    await asyncio.sleep(0.08)

    assert fired == []
    assert not debounce.is_current(generation)


@pytest.mark.asyncio
async def test_rearm_keeps_a_single_timer():
    fired = []
    debounce = AnalyzingDebounce(fired.append, delay=0.03)

    debounce.arm()
    await asyncio.sleep(0.01)
    latest = debounce.arm()
    await asyncio.sleep(0.1)

    assert fired == [latest]


@pytest.mark.asyncio
async def test_fire_already_queued_is_stale_after_cancel():
    fired = []
    debounce = AnalyzingDebounce(fired.append, delay=0.01)

    generation = debounce.arm()
    await asyncio.sleep(0.05)
    debounce.cancel()

    assert fired == [generation]
    assert not debounce.is_current(generation)
