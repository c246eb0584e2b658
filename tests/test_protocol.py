import json

import pytest

from livepanel.errors import DecodeError, ProtocolError
from livepanel.interview.models import Speaker
from livepanel.interview.protocol import (
    AnnouncementEvent, ConnectionEstablishedEvent, GreetingEvent, InterviewCompletedEvent,
    NextQuestionEvent, ScoringUpdateEvent, ServerErrorEvent, TranscriptionUpdateEvent,
    decode_event,
)


def _decode(payload):
    return decode_event(json.dumps(payload))


def test_tagged_events_decode_to_their_models():
    assert isinstance(_decode({"type": "connection_established", "message": "hi"}), ConnectionEstablishedEvent)
    assert isinstance(_decode({"type": "transcription_update", "message": "x"}), TranscriptionUpdateEvent)
    assert isinstance(_decode({"type": "interview_completed", "message": "bye"}), InterviewCompletedEvent)
    assert isinstance(_decode({"type": "error", "message": "boom"}), ServerErrorEvent)


def test_greeting_fields():
    event = _decode({"type": "greeting", "message": "Hello!", "panel_name": "Backend",
                     "panel_description": "Round 1", "unexpected": 1})
    assert isinstance(event, GreetingEvent)
    assert event.message == "Hello!"
    assert event.panel_name == "Backend"
    assert event.character is None


def test_next_question_metadata():
    event = _decode({"type": "next_question", "message": "Why?", "question_uuid": "q1",
                     "round_number": 2, "difficulty": "hard", "expected_time_in_seconds": 90})
    assert isinstance(event, NextQuestionEvent)
    assert event.round_number == 2
    assert event.expected_time_in_seconds == 90


def test_scoring_update_score_is_numeric():
    event = _decode({"type": "scoring_update", "score": 7.5, "feedback": "good"})
    assert isinstance(event, ScoringUpdateEvent)
    assert event.score == 7.5

    assert _decode({"type": "scoring_update", "score": "8"}).score == 8.0


def test_unusable_score_still_yields_scoring_update():
    event = _decode({"type": "scoring_update", "score": "7/10", "feedback": None})
    assert isinstance(event, ScoringUpdateEvent)
    assert event.score is None
    assert event.feedback == ""


def test_null_message_reads_as_empty_text():
    event = _decode({"type": "error", "message": None})
    assert isinstance(event, ServerErrorEvent)
    assert event.message == ""

    event = _decode({"type": "greeting", "message": None, "character": None, "panel_name": 5})
    assert event.message == ""
    assert event.panel_name == "5"


def test_next_question_metadata_is_lenient():
    event = _decode({"type": "next_question", "message": "Next?", "difficulty": 3,
                     "expected_time_in_seconds": 90.5, "round_number": "two",
                     "question_uuid": {"id": 1}})
    assert isinstance(event, NextQuestionEvent)
    assert event.message == "Next?"
    assert event.difficulty == "3"
    assert event.expected_time_in_seconds == 90.5
    assert event.round_number is None
    assert event.question_uuid is None

    assert _decode({"type": "next_question", "message": "Q", "round_number": 3.0}).round_number == 3
    assert _decode({"type": "next_question", "message": "Q", "round_number": True}).round_number is None


def test_untagged_question_becomes_next_question():
    event = _decode({"question": "Tell me about yourself"})
    assert isinstance(event, NextQuestionEvent)
    assert event.message == "Tell me about yourself"

    event = _decode({"question": "raw", "message": "Preferred text"})
    assert event.message == "Preferred text"


def test_untagged_message_becomes_announcement():
    event = _decode({"message": "Welcome", "character": "system"})
    assert isinstance(event, AnnouncementEvent)
    assert Speaker.from_character(event.character) is Speaker.SYSTEM

    event = _decode({"message": "Welcome"})
    assert Speaker.from_character(event.character) is Speaker.AI


def test_unknown_type_is_classified_by_fields():
    event = _decode({"type": "banner", "message": "Hi there"})
    assert isinstance(event, AnnouncementEvent)


def test_question_bank_object_uses_name_as_text():
    event = _decode({"uuid": "abc", "name": "Explain closures"})
    assert isinstance(event, NextQuestionEvent)
    assert event.message == "Explain closures"
    assert event.question_uuid == "abc"


def test_unclassifiable_object_is_a_protocol_error():
    with pytest.raises(ProtocolError) as info:
        _decode({"foo": "bar"})
    assert info.value.payload == {"foo": "bar"}


def test_non_object_json_is_a_protocol_error():
    with pytest.raises(ProtocolError):
        decode_event("[1, 2, 3]")


def test_malformed_json_is_a_decode_error():
    with pytest.raises(DecodeError) as info:
        decode_event("{not json")
    assert info.value.raw == "{not json"


@pytest.mark.parametrize("character,expected", [
    (None, Speaker.AI),
    ("", Speaker.AI),
    ("candidate", Speaker.CANDIDATE),
    ("You", Speaker.CANDIDATE),
    ("system", Speaker.SYSTEM),
    ("interviewer", Speaker.AI),
])
def test_speaker_mapping(character, expected):
    assert Speaker.from_character(character) is expected
