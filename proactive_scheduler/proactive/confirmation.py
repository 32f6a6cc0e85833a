"""Confirmation - turns an accepted time slot into a meeting announcement."""
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from proactive_scheduler.config import settings
from proactive_scheduler.proactive.errors import (
    AnnouncementPostError,
    InvalidTimeSlotError,
    NotAParticipantError,
    SuggestionAlreadyResolvedError,
)
from proactive_scheduler.proactive.types import Suggestion, SuggestionStatus, TimeSlot
from proactive_scheduler.utils.logger import get_logger

logger = get_logger(__name__)

ANNOUNCEMENT_PREVIEW = "📅 Meeting scheduled"


def announcement_message_id(suggestion_id: str) -> str:
    """Stable message id, so a retried confirmation never posts twice."""
    return f"announcement-{suggestion_id}"


def format_announcement(suggestion: Suggestion, time_slot: TimeSlot) -> str:
    start = time_slot.start_time
    hour = start.hour % 12 or 12
    date_str = f"{start:%A, %B} {start.day}, {start.year}"
    time_str = f"{hour}:{start:%M} {start:%p}"

    names = [suggestion.participant_names.get(pid, pid) for pid in suggestion.participant_ids]

    lines = [
        "📅 **Meeting Scheduled**",
        "",
        f"**Purpose:** {suggestion.purpose}",
        f"**When:** {date_str} at {time_str} UTC",
        f"**Duration:** {time_slot.duration} minutes",
        f"**Participants:** {', '.join(names)}",
    ]

    displays = list(dict.fromkeys(time_slot.timezone_displays.values()))
    if displays:
        lines.append("")
        lines.append("**Times by timezone:**")
        lines.extend(f"• {display}" for display in displays)

    lines.append("")
    lines.append("Add this to your calendar!")
    return "\n".join(lines)


@dataclass
class ConfirmationResult:
    suggestion: Suggestion
    announcement: str
    message_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': True,
            'message': 'Meeting scheduled successfully',
            'calendar_message': self.announcement,
            'message_id': self.message_id,
            'suggestion': self.suggestion.to_dict()
        }


class ConfirmationHandler:
    """
    Accepts a suggestion on behalf of a participant.

    Steps: post the announcement, refresh the conversation preview, mark the
    suggestion accepted. The steps are not one transaction; the announcement
    uses a message id derived from the suggestion, so running the whole
    confirmation again after a partial failure finishes the job without
    duplicating the message.
    """

    def __init__(
        self,
        suggestion_store,
        message_store,
        sender_id: Optional[str] = None,
        sender_name: Optional[str] = None
    ):
        self.suggestion_store = suggestion_store
        self.message_store = message_store
        self.sender_id = sender_id or settings.ASSISTANT_SENDER_ID
        self.sender_name = sender_name or settings.ASSISTANT_SENDER_NAME

    def confirm(
        self,
        suggestion_id: str,
        time_slot: Union[TimeSlot, Dict[str, Any]],
        user_id: str
    ) -> ConfirmationResult:
        suggestion = self.suggestion_store.get(suggestion_id)

        if not suggestion.is_participant(user_id):
            raise NotAParticipantError(suggestion_id, user_id)

        requested = self._coerce_slot(suggestion_id, time_slot)

        if suggestion.status is SuggestionStatus.DISMISSED:
            raise SuggestionAlreadyResolvedError(suggestion_id, "Suggestion was dismissed")
        if suggestion.status is SuggestionStatus.ACCEPTED:
            if suggestion.accepted_time_slot and suggestion.accepted_time_slot.matches(requested):
                logger.info(f"Suggestion {suggestion_id} already accepted for this slot")
                return ConfirmationResult(
                    suggestion=suggestion,
                    announcement=format_announcement(suggestion, suggestion.accepted_time_slot),
                    message_id=suggestion.announcement_message_id or announcement_message_id(suggestion_id)
                )
            raise SuggestionAlreadyResolvedError(suggestion_id, "Suggestion was already accepted for a different time")

        chosen = suggestion.find_suggested_slot(requested)
        if chosen is None:
            raise InvalidTimeSlotError(suggestion_id, "Time slot is not one of the suggested time slots")

        logger.info(f"Confirming suggestion {suggestion_id} for {chosen.start_time.isoformat()}")
        announcement = format_announcement(suggestion, chosen)

        try:
            message = self.message_store.append_message(
                suggestion.conversation_id,
                self.sender_id,
                self.sender_name,
                announcement,
                message_id=announcement_message_id(suggestion_id),
                read_by=[self.sender_id]
            )
        except Exception as e:
            logger.error(f"Failed to post meeting announcement for suggestion {suggestion_id}: {e}")
            raise AnnouncementPostError(suggestion_id, f"Failed to post meeting announcement: {e}") from e

        if message['text'] != announcement:
            # The announcement id is already taken by a confirmation for another slot
            logger.warning(f"Suggestion {suggestion_id} was confirmed concurrently for a different time")
            raise SuggestionAlreadyResolvedError(suggestion_id, "Suggestion was already accepted for a different time")

        try:
            self.message_store.update_last_message(suggestion.conversation_id, ANNOUNCEMENT_PREVIEW)
        except Exception as e:
            logger.error(f"Failed to update conversation preview for suggestion {suggestion_id}: {e}")
            raise AnnouncementPostError(suggestion_id, f"Failed to post meeting announcement: {e}") from e

        updated = self.suggestion_store.transition(
            suggestion_id,
            SuggestionStatus.ACCEPTED,
            time_slot=chosen,
            actor_id=user_id,
            announcement_message_id=message['id']
        )
        if updated.status is not SuggestionStatus.ACCEPTED:
            raise SuggestionAlreadyResolvedError(suggestion_id, f"Suggestion was {updated.status.value} concurrently")
        if not (updated.accepted_time_slot and updated.accepted_time_slot.matches(chosen)):
            raise SuggestionAlreadyResolvedError(suggestion_id, "Suggestion was already accepted for a different time")

        logger.info(f"Suggestion {suggestion_id} confirmed; announcement {message['id']} posted")
        return ConfirmationResult(suggestion=updated, announcement=message['text'], message_id=message['id'])

    def _coerce_slot(self, suggestion_id: str, time_slot: Union[TimeSlot, Dict[str, Any], None]) -> TimeSlot:
        if isinstance(time_slot, TimeSlot):
            return time_slot
        if time_slot is None:
            raise InvalidTimeSlotError(suggestion_id, "Missing time slot")
        try:
            return TimeSlot.from_dict(time_slot)
        except ValueError as e:
            raise InvalidTimeSlotError(suggestion_id, str(e)) from e
