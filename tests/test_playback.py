import time

from livepanel.infrastructure.audio.speech import Voice
from livepanel.interview.services import PlaybackController
from livepanel.interview.testing import MockTTSEngine


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_speaks_with_preferred_voice():
    engine = MockTTSEngine()
    playback = PlaybackController(engine, preferred_voice="Neural2-J", language_code="en-US")

    playback.speak("Hello!")
    assert playback.wait_until_idle(timeout=2)

    assert engine.spoken == ["Hello!"]
    assert engine.voices_used[0].name == "en-US-Neural2-J"
    playback.shutdown()


def test_falls_back_to_language_match_then_default():
    engine = MockTTSEngine(voices=[Voice("de-DE-Wavenet-A", ["de-DE"]), Voice("en-GB-Neural2-B", ["en-GB"])])
    playback = PlaybackController(engine, preferred_voice="missing", language_code="en-US")
    assert playback.select_voice().name == "en-GB-Neural2-B"
    playback.shutdown()

    engine = MockTTSEngine(voices=[Voice("de-DE-Wavenet-A", ["de-DE"])])
    playback = PlaybackController(engine, preferred_voice="missing", language_code="fr-FR")
    assert playback.select_voice() is None
    playback.shutdown()


def test_voice_is_resolved_once_even_when_listing_fails():
    engine = MockTTSEngine(fail_list_voices=True)
    playback = PlaybackController(engine)

    playback.speak("one")
    playback.wait_until_idle(timeout=2)
    playback.speak("two")
    playback.wait_until_idle(timeout=2)

    assert engine.list_voices_calls == 1
    assert engine.spoken == ["one", "two"]
    assert engine.voices_used == [None, None]
    playback.shutdown()


def test_new_line_cancels_the_one_in_flight():
    engine = MockTTSEngine(hold=True)
    playback = PlaybackController(engine)

    first = playback.speak("first")
    assert _wait_for(lambda: engine.spoken == ["first"])
    second = playback.speak("second")
    assert _wait_for(lambda: engine.spoken == ["first", "second"])

    assert first.cancelled.is_set()
    assert not second.cancelled.is_set()
    assert engine.interrupted == ["first"]

    playback.cancel()
    assert playback.wait_until_idle(timeout=2)
    assert engine.interrupted == ["first", "second"]
    playback.shutdown()


def test_engine_failures_are_swallowed():
    engine = MockTTSEngine(fail_speak=True)
    playback = PlaybackController(engine)

    playback.speak("will fail")
    assert playback.wait_until_idle(timeout=2)
    playback.speak("still works")
    assert playback.wait_until_idle(timeout=2)

    assert engine.spoken == ["will fail", "still works"]
    playback.shutdown()


def test_disabled_or_empty_speech_is_skipped():
    assert PlaybackController(None).speak("Hello") is None

    engine = MockTTSEngine()
    playback = PlaybackController(engine)
    assert playback.speak("   ") is None
    playback.wait_until_idle(timeout=2)
    assert engine.spoken == []
    playback.shutdown()
