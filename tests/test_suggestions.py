from datetime import datetime, timedelta, timezone

import pytest

from proactive_scheduler.models.database import db_session, ProactiveSuggestion
from proactive_scheduler.proactive.errors import (
    InvalidTransitionError,
    NotAParticipantError,
    SuggestionAlreadyResolvedError,
    SuggestionNotFoundError,
)
from proactive_scheduler.proactive.suggestions import SuggestionStore
from proactive_scheduler.proactive.types import Detection, SuggestionStatus, TimeSlot, Urgency

from tests.conftest import FIXED_NOW


def _detection(message_id, confidence=0.9):
    return Detection(
        needs_meeting=True,
        confidence=confidence,
        purpose="Budget review",
        urgency=Urgency.FLEXIBLE,
        message_id=message_id
    )


def test_create_copies_conversation_details(suggestion_store, conversation):
    suggestion_id = suggestion_store.create(_detection('msg-1'), conversation)

    suggestion = suggestion_store.get(suggestion_id)
    assert suggestion.status is SuggestionStatus.PENDING
    assert suggestion.type == 'scheduling'
    assert suggestion.conversation_id == conversation.id
    assert suggestion.conversation_name == "Launch team"
    assert suggestion.participant_ids == ['alice', 'bob', 'carol']
    assert suggestion.participant_names['bob'] == 'Bob'
    assert suggestion.purpose == "Budget review"
    assert suggestion.suggested_time_slots == []
    assert suggestion.created_at == FIXED_NOW.replace(tzinfo=None)


def test_create_is_idempotent_per_triggering_message(suggestion_store, conversation):
    first = suggestion_store.create(_detection('msg-1'), conversation)
    second = suggestion_store.create(_detection('msg-1', confidence=0.95), conversation)

    assert first == second
    assert db_session.query(ProactiveSuggestion).count() == 1


def test_get_unknown_suggestion_raises(suggestion_store):
    assert suggestion_store.find('missing') is None
    with pytest.raises(SuggestionNotFoundError):
        suggestion_store.get('missing')


def test_dismiss_is_terminal_and_repeatable(suggestion_store, conversation):
    suggestion_id = suggestion_store.create(_detection('msg-1'), conversation)

    dismissed = suggestion_store.dismiss(suggestion_id, 'bob')
    again = suggestion_store.dismiss(suggestion_id, 'bob')

    assert dismissed.status is SuggestionStatus.DISMISSED
    assert dismissed.dismissed_at is not None
    assert again.status is SuggestionStatus.DISMISSED
    assert again.dismissed_at == dismissed.dismissed_at


def test_dismiss_requires_participant(suggestion_store, conversation):
    suggestion_id = suggestion_store.create(_detection('msg-1'), conversation)

    with pytest.raises(NotAParticipantError):
        suggestion_store.dismiss(suggestion_id, 'mallory')
    assert suggestion_store.get(suggestion_id).status is SuggestionStatus.PENDING


def test_terminal_suggestions_never_change(suggestion_store, conversation):
    suggestion_id = suggestion_store.create(_detection('msg-1'), conversation)
    slot = TimeSlot(start_time=datetime(2025, 1, 8, 17, tzinfo=timezone.utc))

    suggestion_store.transition(suggestion_id, SuggestionStatus.DISMISSED, actor_id='alice')
    result = suggestion_store.transition(suggestion_id, SuggestionStatus.ACCEPTED, time_slot=slot, actor_id='bob')

    assert result.status is SuggestionStatus.DISMISSED
    assert result.accepted_time_slot is None


@pytest.mark.parametrize("status", ['pending', 'cancelled'])
def test_rejects_invalid_target_status(suggestion_store, conversation, status):
    suggestion_id = suggestion_store.create(_detection('msg-1'), conversation)

    with pytest.raises(InvalidTransitionError):
        suggestion_store.transition(suggestion_id, status)


def test_accepting_requires_a_time_slot(suggestion_store, conversation):
    suggestion_id = suggestion_store.create(_detection('msg-1'), conversation)

    with pytest.raises(InvalidTransitionError):
        suggestion_store.transition(suggestion_id, SuggestionStatus.ACCEPTED)


def test_accept_records_slot_and_actor(suggestion_store, conversation):
    suggestion_id = suggestion_store.create(_detection('msg-1'), conversation)
    slot = TimeSlot(start_time=datetime(2025, 1, 8, 17, tzinfo=timezone.utc), duration=30)

    accepted = suggestion_store.transition(
        suggestion_id, SuggestionStatus.ACCEPTED, time_slot=slot, actor_id='carol',
        announcement_message_id='announcement-x'
    )

    assert accepted.status is SuggestionStatus.ACCEPTED
    assert accepted.accepted_time_slot.matches(slot)
    assert accepted.accepted_by == 'carol'
    assert accepted.announcement_message_id == 'announcement-x'


def test_list_active_hides_resolved_and_stale(conversation):
    times = iter([
        FIXED_NOW.replace(tzinfo=None) - timedelta(hours=49),
        FIXED_NOW.replace(tzinfo=None) - timedelta(hours=2),
        FIXED_NOW.replace(tzinfo=None) - timedelta(hours=1),
    ])
    creating = SuggestionStore(clock=lambda: next(times))
    stale_id = creating.create(_detection('msg-old'), conversation)
    dismissed_id = creating.create(_detection('msg-dismissed'), conversation)
    fresh_id = creating.create(_detection('msg-fresh'), conversation)

    store = SuggestionStore(clock=lambda: FIXED_NOW.replace(tzinfo=None))
    store.dismiss(dismissed_id, 'alice')

    active = store.list_active(conversation.id)
    assert [s.id for s in active] == [fresh_id]
    assert store.is_stale(store.get(stale_id))
    assert not store.is_stale(store.get(fresh_id))


@pytest.mark.parametrize("status", [SuggestionStatus.ACCEPTED, SuggestionStatus.DISMISSED])
def test_time_slots_are_frozen_once_resolved(suggestion_store, conversation, status):
    suggestion_id = suggestion_store.create(_detection('msg-1'), conversation)
    offered = [TimeSlot(start_time=datetime(2025, 1, 8, 17, tzinfo=timezone.utc))]
    suggestion_store.attach_time_slots(suggestion_id, offered)
    suggestion_store.transition(suggestion_id, status, time_slot=offered[0], actor_id='alice')

    with pytest.raises(SuggestionAlreadyResolvedError):
        suggestion_store.attach_time_slots(
            suggestion_id, [TimeSlot(start_time=datetime(2025, 1, 9, 17, tzinfo=timezone.utc), duration=30)]
        )

    stored = suggestion_store.get(suggestion_id)
    assert [(s.start_time, s.duration) for s in stored.suggested_time_slots] == [(offered[0].start_time, 60)]
