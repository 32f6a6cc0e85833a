"""Persistence and lifecycle of proactive scheduling suggestions."""
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Union
from sqlalchemy.exc import IntegrityError

from proactive_scheduler.config import settings
from proactive_scheduler.models.database import db_session, ProactiveSuggestion
from proactive_scheduler.proactive.errors import (
    InvalidTransitionError,
    NotAParticipantError,
    SuggestionAlreadyResolvedError,
    SuggestionNotFoundError,
)
from proactive_scheduler.proactive.types import (
    ConversationSnapshot,
    Detection,
    Suggestion,
    SuggestionStatus,
    TimeSlot,
)
from proactive_scheduler.utils.logger import get_logger

logger = get_logger(__name__)


class SuggestionStore:
    """
    Creates suggestions and moves them through their lifecycle.

    pending -> accepted | dismissed, nothing else. Terminal suggestions are
    returned as-is when transitioned again, and rows are never deleted.
    """

    def __init__(
        self,
        session_factory=None,
        stale_after_hours: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.session_factory = session_factory or db_session
        self.stale_after = timedelta(hours=stale_after_hours or settings.SUGGESTION_STALE_HOURS)
        self.clock = clock or datetime.utcnow

    def create(self, detection: Detection, conversation: ConversationSnapshot) -> str:
        """Persist a pending suggestion; one per triggering message."""
        session = self.session_factory()
        try:
            existing = self._by_trigger(session, detection.message_id)
            if existing:
                logger.info(
                    f"Suggestion {existing.id} already exists for message {detection.message_id}"
                )
                return existing.id

            suggestion = ProactiveSuggestion(
                type='scheduling',
                conversation_id=conversation.id,
                conversation_name=conversation.name or "Conversation",
                participant_ids=list(conversation.participant_ids),
                participant_names=dict(conversation.participant_names),
                purpose=detection.purpose,
                urgency=detection.urgency.value,
                confidence=detection.confidence,
                status=SuggestionStatus.PENDING.value,
                triggered_by_message_id=detection.message_id,
                suggested_time_slots=[],
                created_at=self.clock()
            )
            session.add(suggestion)
            try:
                session.commit()
            except IntegrityError:
                # Lost a race with a redelivered event for the same message
                session.rollback()
                existing = self._by_trigger(session, detection.message_id)
                if existing:
                    return existing.id
                raise

            logger.info(f"Proactive suggestion created: {suggestion.id} (conversation {conversation.id})")
            return suggestion.id
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def find(self, suggestion_id: str) -> Optional[Suggestion]:
        session = self.session_factory()
        try:
            row = session.query(ProactiveSuggestion).filter(
                ProactiveSuggestion.id == suggestion_id
            ).first()
            return Suggestion.from_model(row) if row else None
        finally:
            session.close()

    def get(self, suggestion_id: str) -> Suggestion:
        suggestion = self.find(suggestion_id)
        if suggestion is None:
            raise SuggestionNotFoundError(suggestion_id)
        return suggestion

    def list_active(self, conversation_id: str) -> List[Suggestion]:
        """Pending, non-stale suggestions for a conversation, newest first."""
        cutoff = self.clock() - self.stale_after
        session = self.session_factory()
        try:
            rows = session.query(ProactiveSuggestion).filter(
                ProactiveSuggestion.conversation_id == conversation_id,
                ProactiveSuggestion.status == SuggestionStatus.PENDING.value,
                ProactiveSuggestion.created_at >= cutoff
            ).order_by(ProactiveSuggestion.created_at.desc()).all()
            return [Suggestion.from_model(row) for row in rows]
        finally:
            session.close()

    def is_stale(self, suggestion: Suggestion) -> bool:
        return suggestion.is_stale(now=self.clock(), stale_after=self.stale_after)

    def attach_time_slots(self, suggestion_id: str, time_slots: List[TimeSlot]) -> Suggestion:
        session = self.session_factory()
        try:
            row = session.query(ProactiveSuggestion).filter(
                ProactiveSuggestion.id == suggestion_id
            ).with_for_update().first()
            if not row:
                raise SuggestionNotFoundError(suggestion_id)
            if SuggestionStatus(row.status).is_terminal:
                raise SuggestionAlreadyResolvedError(
                    suggestion_id, f"Suggestion is already {row.status}; its time slots are final"
                )
            row.suggested_time_slots = [slot.to_dict() for slot in time_slots]
            row.time_slots_generated_at = self.clock()
            session.commit()
            logger.info(f"Suggestion {suggestion_id} updated with {len(time_slots)} time slots")
            return Suggestion.from_model(row)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def transition(
        self,
        suggestion_id: str,
        status: Union[SuggestionStatus, str],
        time_slot: Optional[TimeSlot] = None,
        actor_id: Optional[str] = None,
        announcement_message_id: Optional[str] = None
    ) -> Suggestion:
        """Move a pending suggestion to a terminal status.

        Already-terminal suggestions come back unchanged, whatever status was
        requested; callers compare the returned status to tell a repeat from a
        conflict.
        """
        try:
            target = SuggestionStatus(status)
        except ValueError:
            raise InvalidTransitionError(suggestion_id, f"Unknown status: {status}")
        if not target.is_terminal:
            raise InvalidTransitionError(suggestion_id, "Suggestions cannot move back to pending")
        if target is SuggestionStatus.ACCEPTED and time_slot is None:
            raise InvalidTransitionError(suggestion_id, "Accepting a suggestion requires a time slot")

        session = self.session_factory()
        try:
            row = session.query(ProactiveSuggestion).filter(
                ProactiveSuggestion.id == suggestion_id
            ).with_for_update().first()
            if not row:
                raise SuggestionNotFoundError(suggestion_id)

            if SuggestionStatus(row.status).is_terminal:
                logger.info(f"Suggestion {suggestion_id} already {row.status}; leaving it unchanged")
                return Suggestion.from_model(row)

            now = self.clock()
            row.status = target.value
            if target is SuggestionStatus.ACCEPTED:
                row.accepted_time_slot = time_slot.to_dict()
                row.accepted_at = now
                row.accepted_by = actor_id
                row.announcement_message_id = announcement_message_id
            else:
                row.dismissed_at = now
                row.dismissed_by = actor_id
            session.commit()

            logger.info(f"Suggestion {suggestion_id} -> {target.value}")
            return Suggestion.from_model(row)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dismiss(self, suggestion_id: str, user_id: str) -> Suggestion:
        """Dismissal path for participants."""
        suggestion = self.get(suggestion_id)
        if not suggestion.is_participant(user_id):
            raise NotAParticipantError(suggestion_id, user_id)
        return self.transition(suggestion_id, SuggestionStatus.DISMISSED, actor_id=user_id)

    def _by_trigger(self, session, message_id: Optional[str]) -> Optional[ProactiveSuggestion]:
        if not message_id:
            return None
        return session.query(ProactiveSuggestion).filter(
            ProactiveSuggestion.triggered_by_message_id == message_id
        ).first()
