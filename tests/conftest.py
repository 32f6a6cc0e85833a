"""Shared fixtures: in-memory database, fake collaborators, fixed clock."""
import json
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SOCKETIO_ASYNC_MODE"] = "threading"
os.environ["OPENAI_API_KEY"] = "sk-test-not-a-real-key"

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402

from proactive_scheduler.models.database import Base, db_session, engine  # noqa: E402
from proactive_scheduler.proactive.detection import SchedulingDetector  # noqa: E402
from proactive_scheduler.proactive.jobs import BackgroundJobQueue  # noqa: E402
from proactive_scheduler.proactive.suggestions import SuggestionStore  # noqa: E402
from proactive_scheduler.proactive.time_slots import TimeSlotGenerator  # noqa: E402
from proactive_scheduler.proactive.types import Detection, Urgency  # noqa: E402
from proactive_scheduler.services.completion import CompletionService  # noqa: E402
from proactive_scheduler.services.messages import MessageStore  # noqa: E402
from proactive_scheduler.services.profiles import ProfileStore  # noqa: E402

# Monday 2025-01-06 10:00 PST. Standard time through the whole search window.
FIXED_NOW = datetime(2025, 1, 6, 18, 0, tzinfo=timezone.utc)

PARTICIPANT_NAMES = {'alice': 'Alice', 'bob': 'Bob', 'carol': 'Carol'}
PARTICIPANT_ZONES = {'alice': 'Etc/GMT+8', 'bob': 'Etc/GMT+5', 'carol': 'UTC'}


def meeting_reply(needs_meeting=True, confidence=0.9, purpose="Launch plan", urgency="this-week"):
    return json.dumps({
        'needsMeeting': needs_meeting,
        'confidence': confidence,
        'purpose': purpose,
        'urgency': urgency
    })


class FakeCompletionService(CompletionService):
    """Returns a canned reply, or raises ``error`` when one is set."""

    def __init__(self, reply=None, error=None):
        self.reply = reply if reply is not None else meeting_reply()
        self.error = error
        self.calls = []

    def complete(self, instruction, context):
        self.calls.append((instruction, context))
        if self.error is not None:
            raise self.error
        return self.reply


class FakeProfileStore(ProfileStore):

    def __init__(self, timezones=None, failing=()):
        self.timezones = dict(timezones or {})
        self.failing = set(failing)

    def get_timezone(self, user_id):
        if user_id in self.failing:
            raise ConnectionError(f"profile service unavailable for {user_id}")
        return self.timezones.get(user_id)


@pytest.fixture(autouse=True)
def database():
    Base.metadata.create_all(bind=engine)
    yield
    db_session.remove()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def naive_clock():
    return lambda: FIXED_NOW.replace(tzinfo=None)


@pytest.fixture
def completion():
    return FakeCompletionService()


@pytest.fixture
def profiles():
    return FakeProfileStore(PARTICIPANT_ZONES)


@pytest.fixture
def message_store():
    return MessageStore()


@pytest.fixture
def suggestion_store(naive_clock):
    return SuggestionStore(clock=naive_clock)


@pytest.fixture
def detector(completion, message_store):
    return SchedulingDetector(completion, message_store=message_store, confidence_threshold=0.7)


@pytest.fixture
def slot_generator(profiles, suggestion_store, clock):
    return TimeSlotGenerator(
        profiles,
        suggestion_store=suggestion_store,
        default_timezone='America/Los_Angeles',
        reference_timezone='America/Los_Angeles',
        clock=clock
    )


@pytest.fixture
def jobs():
    queue = BackgroundJobQueue(max_workers=1)
    yield queue
    queue.shutdown()


@pytest.fixture
def conversation(message_store):
    return message_store.create_conversation(
        name="Launch team",
        participant_ids=['alice', 'bob', 'carol'],
        participant_names=PARTICIPANT_NAMES
    )


@pytest.fixture
def make_suggestion(suggestion_store, slot_generator, message_store, conversation):
    """Create a pending suggestion triggered by a fresh message, slots attached."""

    def _make(with_slots=True, text="We should sync on the launch plan"):
        message = message_store.append_message(conversation.id, 'alice', 'Alice', text)
        detection = Detection(
            needs_meeting=True,
            confidence=0.9,
            purpose="Launch plan",
            urgency=Urgency.THIS_WEEK,
            conversation_id=conversation.id,
            message_id=message['id']
        )
        suggestion_id = suggestion_store.create(detection, conversation)
        if with_slots:
            slot_generator.generate_for_suggestion(suggestion_id)
        return suggestion_store.get(suggestion_id)

    return _make
