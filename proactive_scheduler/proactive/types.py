"""Value types shared by the proactive scheduling components."""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser


class Urgency(str, Enum):
    """How soon the meeting should happen."""

    URGENT = "urgent"
    THIS_WEEK = "this-week"
    FLEXIBLE = "flexible"

    @classmethod
    def parse(cls, value: Any) -> "Urgency":
        """Normalize model output such as "this week" or "THIS_WEEK"."""
        if isinstance(value, Urgency):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Invalid urgency: {value!r}")
        normalized = value.strip().lower().replace('_', '-').replace(' ', '-')
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Invalid urgency: {value!r}")


class SuggestionStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DISMISSED = "dismissed"

    @property
    def is_terminal(self) -> bool:
        return self is not SuggestionStatus.PENDING


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class TimeSlot:
    """A concrete meeting candidate."""
    start_time: datetime
    duration: int = 60  # minutes
    timezone_displays: Dict[str, str] = field(default_factory=dict)  # participant id -> "Tue, Mar 4, 9:00 AM PST"

    def __post_init__(self):
        self.start_time = _as_utc(self.start_time)

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(minutes=self.duration)

    def matches(self, other: "TimeSlot") -> bool:
        """Same instant and same length, regardless of display strings."""
        return self.start_time == other.start_time and self.duration == other.duration

    def to_dict(self) -> Dict[str, Any]:
        return {
            'start_time': self.start_time.isoformat(),
            'end_time': self.end_time.isoformat(),
            'duration': self.duration,
            'timezone_displays': dict(self.timezone_displays),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimeSlot":
        """Build a slot from stored or client-supplied JSON.

        Raises ValueError when the payload is not a usable slot.
        """
        if not isinstance(data, dict):
            raise ValueError("Time slot must be an object")
        raw_start = data.get('start_time', data.get('startTime'))
        if not raw_start:
            raise ValueError("Time slot is missing start_time")
        try:
            start = date_parser.isoparse(raw_start) if isinstance(raw_start, str) else raw_start
        except (ValueError, TypeError) as exc:
            raise ValueError(f"Invalid start_time: {raw_start!r}") from exc
        if not isinstance(start, datetime):
            raise ValueError(f"Invalid start_time: {raw_start!r}")

        duration = data.get('duration', 60)
        if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
            raise ValueError(f"Invalid duration: {duration!r}")

        displays = data.get('timezone_displays', data.get('timezoneDisplays')) or {}
        if not isinstance(displays, dict):
            raise ValueError("timezone_displays must be an object")

        return cls(
            start_time=start,
            duration=duration,
            timezone_displays={str(k): str(v) for k, v in displays.items()}
        )


@dataclass
class Detection:
    """Classifier verdict for one message."""
    needs_meeting: bool
    confidence: float
    purpose: str
    urgency: Urgency
    conversation_id: Optional[str] = None
    message_id: Optional[str] = None
    detected_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class ConversationSnapshot:
    """Conversation metadata read alongside a message-create event."""
    id: str
    name: str
    participant_ids: List[str]
    participant_names: Dict[str, str]


@dataclass
class Suggestion:
    """Detached view of a persisted scheduling suggestion."""
    id: str
    conversation_id: str
    conversation_name: str
    participant_ids: List[str]
    participant_names: Dict[str, str]
    purpose: str
    urgency: Urgency
    confidence: float
    status: SuggestionStatus
    created_at: datetime
    triggered_by_message_id: str
    suggested_time_slots: List[TimeSlot] = field(default_factory=list)
    time_slots_generated_at: Optional[datetime] = None
    accepted_time_slot: Optional[TimeSlot] = None
    accepted_at: Optional[datetime] = None
    accepted_by: Optional[str] = None
    announcement_message_id: Optional[str] = None
    dismissed_at: Optional[datetime] = None
    type: str = "scheduling"

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def is_participant(self, user_id: Optional[str]) -> bool:
        return bool(user_id) and user_id in self.participant_ids

    def is_stale(self, now: Optional[datetime] = None, stale_after: timedelta = timedelta(hours=48)) -> bool:
        now = now or datetime.utcnow()
        return now - self.created_at > stale_after

    def find_suggested_slot(self, slot: TimeSlot) -> Optional[TimeSlot]:
        return next((s for s in self.suggested_time_slots if s.matches(slot)), None)

    @classmethod
    def from_model(cls, row) -> "Suggestion":
        return cls(
            id=row.id,
            type=row.type,
            conversation_id=row.conversation_id,
            conversation_name=row.conversation_name,
            participant_ids=list(row.participant_ids or []),
            participant_names=dict(row.participant_names or {}),
            purpose=row.purpose,
            urgency=Urgency.parse(row.urgency),
            confidence=row.confidence,
            status=SuggestionStatus(row.status),
            created_at=row.created_at,
            triggered_by_message_id=row.triggered_by_message_id,
            suggested_time_slots=[TimeSlot.from_dict(s) for s in (row.suggested_time_slots or [])],
            time_slots_generated_at=row.time_slots_generated_at,
            accepted_time_slot=TimeSlot.from_dict(row.accepted_time_slot) if row.accepted_time_slot else None,
            accepted_at=row.accepted_at,
            accepted_by=row.accepted_by,
            announcement_message_id=row.announcement_message_id,
            dismissed_at=row.dismissed_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        def iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            'id': self.id,
            'type': self.type,
            'conversation_id': self.conversation_id,
            'conversation_name': self.conversation_name,
            'participant_ids': list(self.participant_ids),
            'participant_names': dict(self.participant_names),
            'purpose': self.purpose,
            'urgency': self.urgency.value,
            'confidence': self.confidence,
            'status': self.status.value,
            'created_at': iso(self.created_at),
            'triggered_by_message_id': self.triggered_by_message_id,
            'suggested_time_slots': [s.to_dict() for s in self.suggested_time_slots],
            'time_slots_generated_at': iso(self.time_slots_generated_at),
            'accepted_time_slot': self.accepted_time_slot.to_dict() if self.accepted_time_slot else None,
            'accepted_at': iso(self.accepted_at),
            'accepted_by': self.accepted_by,
            'dismissed_at': iso(self.dismissed_at),
        }
