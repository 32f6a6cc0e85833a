"""Realtime broadcasts of suggestion updates to conversation rooms."""

from proactive_scheduler.proactive.types import Suggestion
from proactive_scheduler.utils.logger import get_logger

logger = get_logger(__name__)

SUGGESTION_EVENT = 'proactive_suggestion'


class SuggestionNotifier:
    """Emits suggestion snapshots to the SocketIO room of their conversation.

    Clients join rooms through the ``join_conversation`` handler. Delivery is
    best-effort: a failed emit is logged and dropped.
    """

    def __init__(self, socketio=None):
        self.socketio = socketio

    def suggestion_updated(self, suggestion: Suggestion, event: str = 'updated') -> None:
        if self.socketio is None:
            return
        try:
            self.socketio.emit(
                SUGGESTION_EVENT,
                {'event': event, 'suggestion': suggestion.to_dict()},
                to=suggestion.conversation_id
            )
        except Exception as e:
            logger.warning(f"Failed to broadcast suggestion {suggestion.id}: {e}")
