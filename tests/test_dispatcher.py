import json

import pytest

from livepanel.errors import DecodeError
from livepanel.interview.dispatcher import MessageDispatcher


@pytest.mark.asyncio
async def test_routes_to_sync_and_async_handlers():
    dispatcher = MessageDispatcher()
    seen = []

    async def on_error(event):
        seen.append(("error", event.message))

    dispatcher.register("greeting", lambda event: seen.append(("greeting", event.message)))
    dispatcher.register("error", on_error)

    await dispatcher.dispatch(json.dumps({"type": "greeting", "message": "Hi"}))
    await dispatcher.dispatch(json.dumps({"type": "error", "message": "Oops"}))

    assert seen == [("greeting", "Hi"), ("error", "Oops")]


@pytest.mark.asyncio
async def test_binary_frames_are_discarded():
    dispatcher = MessageDispatcher()
    dispatcher.register("greeting", lambda event: pytest.fail("should not be called"))

    assert await dispatcher.dispatch(b"\x00\x01\x02") is None
    assert dispatcher.binary_frames_discarded == 1


@pytest.mark.asyncio
async def test_unhandled_event_type_is_returned_without_error():
    dispatcher = MessageDispatcher()
    event = await dispatcher.dispatch(json.dumps({"type": "connection_established"}))
    assert event.type == "connection_established"


@pytest.mark.asyncio
async def test_decode_errors_propagate():
    dispatcher = MessageDispatcher()
    with pytest.raises(DecodeError):
        await dispatcher.dispatch("{broken")
