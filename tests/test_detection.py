import json

import pytest

from proactive_scheduler.proactive.detection import DEFAULT_PURPOSE, SchedulingDetector
from proactive_scheduler.proactive.errors import ClassificationFailure
from proactive_scheduler.proactive.types import Urgency

from tests.conftest import FakeCompletionService, meeting_reply


def _detector(reply=None, error=None, message_store=None, threshold=0.7):
    return SchedulingDetector(
        FakeCompletionService(reply=reply, error=error),
        message_store=message_store,
        confidence_threshold=threshold
    )


def test_classify_parses_model_reply():
    detection = _detector(meeting_reply(confidence=0.85, purpose="Q3 roadmap", urgency="urgent")).classify(
        "Can we hop on a call about the Q3 roadmap today?"
    )

    assert detection.needs_meeting is True
    assert detection.confidence == 0.85
    assert detection.purpose == "Q3 roadmap"
    assert detection.urgency is Urgency.URGENT


def test_classify_extracts_json_wrapped_in_prose():
    reply = "Sure, here it is:\n" + meeting_reply(confidence=0.8) + "\nHope that helps."
    assert _detector(reply).classify("When can we meet?").confidence == 0.8


@pytest.mark.parametrize("raw, expected", [
    ("this week", Urgency.THIS_WEEK),
    ("THIS_WEEK", Urgency.THIS_WEEK),
    ("Flexible", Urgency.FLEXIBLE),
    (None, Urgency.FLEXIBLE),
])
def test_classify_normalizes_urgency(raw, expected):
    detection = _detector(meeting_reply(urgency=raw)).classify("Let's find time to discuss")
    assert detection.urgency is expected


def test_classify_defaults_missing_purpose():
    detection = _detector(meeting_reply(purpose=None)).classify("We should sync")
    assert detection.purpose == DEFAULT_PURPOSE


@pytest.mark.parametrize("reply", [
    "not json at all",
    "{\"needsMeeting\": true, \"confidence\": ",
    json.dumps({'needsMeeting': 'yes', 'confidence': 0.9}),
    json.dumps({'needsMeeting': True, 'confidence': 'high'}),
    json.dumps({'needsMeeting': True, 'confidence': 1.5}),
    json.dumps({'needsMeeting': True, 'confidence': True}),
    json.dumps({'needsMeeting': True, 'confidence': 0.9, 'urgency': 'someday'}),
])
def test_classify_rejects_unusable_replies(reply):
    with pytest.raises(ClassificationFailure):
        _detector(reply).classify("When can we meet?")


def test_classify_wraps_completion_errors():
    with pytest.raises(ClassificationFailure):
        _detector(error=TimeoutError("request timed out")).classify("When can we meet?")


def test_classify_sends_current_and_recent_messages():
    completion = FakeCompletionService()
    detector = SchedulingDetector(completion, confidence_threshold=0.7)

    detector.classify("When can we meet?", [
        {'sender_name': 'Bob', 'text': 'The launch slipped', 'timestamp': '2025-01-06T17:00:00'}
    ])

    _, context = completion.calls[0]
    payload = json.loads(context)
    assert payload['currentMessage'] == "When can we meet?"
    assert payload['recentMessages'] == [
        {'sender': 'Bob', 'text': 'The launch slipped', 'timestamp': '2025-01-06T17:00:00'}
    ]


def test_detect_below_threshold_returns_none():
    detector = _detector(meeting_reply(needs_meeting=True, confidence=0.65))
    assert detector.detect({'text': "Maybe we could chat sometime"}, 'conv-1', 'msg-1') is None


def test_detect_at_threshold_passes_gate():
    detection = _detector(meeting_reply(confidence=0.7)).detect({'text': "Let's sync"}, 'conv-1', 'msg-1')

    assert detection is not None
    assert detection.conversation_id == 'conv-1'
    assert detection.message_id == 'msg-1'


def test_detect_ignores_negative_verdict():
    detector = _detector(meeting_reply(needs_meeting=False, confidence=0.95))
    assert detector.detect({'text': "Thanks, looks good"}, 'conv-1', 'msg-1') is None


def test_detect_swallows_classification_failures():
    assert _detector("garbage").detect({'text': "When can we meet?"}, 'conv-1', 'msg-1') is None
    assert _detector(error=TimeoutError()).detect({'text': "When can we meet?"}, 'conv-1', 'msg-1') is None


def test_detect_skips_empty_text():
    completion = FakeCompletionService()
    detector = SchedulingDetector(completion, confidence_threshold=0.7)

    assert detector.detect({'text': "   "}, 'conv-1', 'msg-1') is None
    assert completion.calls == []


def test_detect_uses_recent_conversation_context(message_store, conversation):
    message_store.append_message(conversation.id, 'bob', 'Bob', "The demo is next week")
    completion = FakeCompletionService()
    detector = SchedulingDetector(completion, message_store=message_store, confidence_threshold=0.7)

    detector.detect({'text': "We should sync before it"}, conversation.id, 'msg-1')

    payload = json.loads(completion.calls[0][1])
    assert [m['text'] for m in payload['recentMessages']] == ["The demo is next week"]


def test_detect_survives_context_fetch_failure():
    class BrokenStore:
        def recent_messages(self, conversation_id, limit):
            raise RuntimeError("database unavailable")

    detector = _detector(message_store=BrokenStore())
    assert detector.detect({'text': "When can we meet?"}, 'conv-1', 'msg-1') is not None
