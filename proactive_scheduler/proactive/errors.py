"""Errors raised by the proactive scheduling components."""
from typing import Optional


class ClassificationFailure(Exception):
    """Raised when the completion service gives no usable classification."""


class SuggestionError(Exception):
    """Base error for user-initiated suggestion actions."""

    status_code = 400

    def __init__(self, suggestion_id: Optional[str], reason: str):
        super().__init__(f"{reason} (suggestion {suggestion_id})")
        self.suggestion_id = suggestion_id
        self.reason = reason

    def to_dict(self) -> dict:
        return {
            'error': self.__class__.__name__,
            'reason': self.reason,
            'suggestion_id': self.suggestion_id,
        }


class SuggestionNotFoundError(SuggestionError):
    status_code = 404

    def __init__(self, suggestion_id: Optional[str]):
        super().__init__(suggestion_id, "Suggestion not found")


class NotAParticipantError(SuggestionError):
    status_code = 403

    def __init__(self, suggestion_id: str, user_id: Optional[str]):
        super().__init__(suggestion_id, f"User {user_id} is not a participant in this suggestion")
        self.user_id = user_id


class InvalidTimeSlotError(SuggestionError):
    status_code = 400


class InvalidTransitionError(SuggestionError):
    status_code = 400


class SuggestionAlreadyResolvedError(SuggestionError):
    """The suggestion already reached a different terminal state."""
    status_code = 409


class AnnouncementPostError(SuggestionError):
    """Posting the meeting announcement into the conversation failed."""
    status_code = 502
