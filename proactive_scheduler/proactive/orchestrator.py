"""Wires scheduling detection, suggestions and time slots to message-create events."""
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from proactive_scheduler.proactive.jobs import BackgroundJobQueue
from proactive_scheduler.proactive.types import TimeSlot
from proactive_scheduler.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class MessageCreatedEvent:
    """Notification that a message was written to a conversation."""
    conversation_id: str
    message_id: str
    text: str
    sender_id: str
    sender_name: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_message(self) -> Dict[str, Any]:
        return {
            'id': self.message_id,
            'text': self.text,
            'sender_id': self.sender_id,
            'sender_name': self.sender_name,
            'timestamp': self.timestamp.isoformat()
        }


class ProactiveOrchestrator:
    """
    Runs the proactive scheduling pipeline off the message write path.

    ``on_message_created`` only enqueues a job and never raises; the job
    detects, creates the suggestion, then fills in its time slots.
    """

    def __init__(
        self,
        detector,
        suggestion_store,
        slot_generator,
        message_store,
        jobs: Optional[BackgroundJobQueue] = None,
        notifier=None,
        ignored_sender_ids: Iterable[str] = ()
    ):
        self.detector = detector
        self.suggestion_store = suggestion_store
        self.slot_generator = slot_generator
        self.message_store = message_store
        self.jobs = jobs or BackgroundJobQueue()
        self.notifier = notifier
        self.ignored_sender_ids = set(ignored_sender_ids)

    def on_message_created(self, event: MessageCreatedEvent) -> Optional[Future]:
        if event.sender_id in self.ignored_sender_ids:
            return None
        try:
            return self.jobs.submit(f"scheduling-detection:{event.message_id}", self.run_detection, event)
        except Exception as e:
            logger.warning(f"Could not enqueue scheduling detection for {event.message_id}: {e}")
            return None

    def run_detection(self, event: MessageCreatedEvent) -> Optional[str]:
        """Detection job. Returns the suggestion id when one was raised."""
        detection = self.detector.detect(event.to_message(), event.conversation_id, event.message_id)
        if not detection:
            return None

        conversation = self.message_store.get_conversation(event.conversation_id)
        if not conversation:
            logger.error(f"Conversation not found: {event.conversation_id}")
            return None

        suggestion_id = self.suggestion_store.create(detection, conversation)
        suggestion = self.suggestion_store.get(suggestion_id)
        if suggestion.time_slots_generated_at is not None:
            # Redelivered event for a suggestion that is already complete
            return suggestion_id

        self._notify(suggestion_id, 'created')
        self.run_slot_generation(suggestion_id)
        return suggestion_id

    def run_slot_generation(self, suggestion_id: str) -> List[TimeSlot]:
        try:
            time_slots = self.slot_generator.generate_for_suggestion(suggestion_id)
        except Exception:
            logger.exception(f"Time slot generation failed for suggestion {suggestion_id}")
            return []

        if not time_slots:
            logger.info(f"No common time found for suggestion {suggestion_id}")
        self._notify(suggestion_id, 'time_slots')
        return time_slots

    def _notify(self, suggestion_id: str, event: str) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.suggestion_updated(self.suggestion_store.get(suggestion_id), event)
        except Exception as e:
            logger.warning(f"Suggestion notification failed for {suggestion_id}: {e}")
