"""Scheduling detection - spots messages where people are trying to set up a meeting."""
import json
from typing import Any, Dict, List, Optional

from proactive_scheduler.config import settings
from proactive_scheduler.proactive.errors import ClassificationFailure
from proactive_scheduler.proactive.types import Detection, Urgency
from proactive_scheduler.services.completion import CompletionService
from proactive_scheduler.utils.logger import get_logger

logger = get_logger(__name__)


SCHEDULING_DETECTION_PROMPT = """You are a helpful assistant that detects when people are trying to schedule meetings.

Analyze the current message, using the recent messages as context, and determine if it indicates a need to schedule a meeting or call.
Look for phrases like:
- "Let's schedule a call"
- "When can we meet?"
- "We should sync on this"
- "Can we hop on a call?"
- "Let's find time to discuss"
- "We need to meet about..."

Response Format (JSON):
{
    "needsMeeting": true/false,
    "confidence": 0.0 to 1.0,
    "purpose": "What the meeting is about (if mentioned)",
    "urgency": "urgent|this-week|flexible"
}

Return ONLY the JSON object."""

DEFAULT_PURPOSE = "Discussion"


class SchedulingDetector:
    """
    Classifies messages as scheduling requests.

    ``classify`` is the raw model verdict and raises ClassificationFailure on
    anything unusable. ``detect`` is the best-effort entry point used by
    background jobs: it reads recent context, applies the confidence gate and
    never raises.
    """

    def __init__(
        self,
        completion_service: CompletionService,
        message_store=None,
        confidence_threshold: Optional[float] = None,
        context_size: Optional[int] = None
    ):
        self.completion_service = completion_service
        self.message_store = message_store
        self.confidence_threshold = (
            settings.DETECTION_CONFIDENCE_THRESHOLD if confidence_threshold is None else confidence_threshold
        )
        self.context_size = context_size or settings.DETECTION_CONTEXT_MESSAGES

    def classify(self, message_text: str, recent_messages: Optional[List[Dict[str, Any]]] = None) -> Detection:
        """Ask the model whether ``message_text`` calls for a meeting."""
        context = json.dumps({
            'currentMessage': message_text,
            'recentMessages': [
                {
                    'sender': m.get('sender_name'),
                    'text': m.get('text'),
                    'timestamp': m.get('timestamp')
                }
                for m in (recent_messages or [])
            ]
        })

        try:
            response_text = self.completion_service.complete(SCHEDULING_DETECTION_PROMPT, context)
        except Exception as exc:
            raise ClassificationFailure(f"Completion call failed: {exc}") from exc

        return self._parse_classification(response_text)

    def passes_gate(self, detection: Detection) -> bool:
        return detection.needs_meeting and detection.confidence >= self.confidence_threshold

    def detect(self, message: Dict[str, Any], conversation_id: str, message_id: str) -> Optional[Detection]:
        """Best-effort detection for a newly created message."""
        text = (message.get('text') or '').strip()
        if not text:
            return None

        logger.info(f"Detecting scheduling need for message {message_id}")
        recent = self._recent_messages(conversation_id)

        try:
            detection = self.classify(text, recent)
        except ClassificationFailure as e:
            logger.warning(f"Scheduling detection failed for message {message_id}: {e}")
            return None

        if not self.passes_gate(detection):
            logger.info(
                f"No scheduling need for message {message_id} "
                f"(needs_meeting={detection.needs_meeting}, confidence={detection.confidence})"
            )
            return None

        detection.conversation_id = conversation_id
        detection.message_id = message_id
        logger.info(f"Scheduling need detected for message {message_id} (confidence: {detection.confidence})")
        return detection

    def _recent_messages(self, conversation_id: str) -> List[Dict[str, Any]]:
        if self.message_store is None:
            return []
        try:
            return self.message_store.recent_messages(conversation_id, self.context_size)
        except Exception as e:
            logger.warning(f"Failed to fetch recent messages for {conversation_id}: {e}")
            return []

    def _parse_classification(self, response_text: Any) -> Detection:
        if not isinstance(response_text, str):
            raise ClassificationFailure("Model returned no text")

        json_start = response_text.find('{')
        json_end = response_text.rfind('}') + 1
        if json_start == -1 or json_end <= json_start:
            raise ClassificationFailure("No JSON object in model response")
        try:
            result = json.loads(response_text[json_start:json_end])
        except json.JSONDecodeError as exc:
            raise ClassificationFailure(f"Malformed JSON in model response: {exc}") from exc
        if not isinstance(result, dict):
            raise ClassificationFailure("Model response is not an object")

        needs_meeting = result.get('needsMeeting', result.get('needs_meeting'))
        if not isinstance(needs_meeting, bool):
            raise ClassificationFailure(f"needsMeeting is not a boolean: {needs_meeting!r}")

        confidence = result.get('confidence')
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            raise ClassificationFailure(f"confidence is not a number: {confidence!r}")
        if not 0.0 <= confidence <= 1.0:
            raise ClassificationFailure(f"confidence out of range: {confidence!r}")

        purpose = result.get('purpose')
        if purpose is not None and not isinstance(purpose, str):
            raise ClassificationFailure(f"purpose is not a string: {purpose!r}")

        raw_urgency = result.get('urgency')
        try:
            urgency = Urgency.parse(raw_urgency) if raw_urgency else Urgency.FLEXIBLE
        except ValueError as exc:
            raise ClassificationFailure(str(exc)) from exc

        return Detection(
            needs_meeting=needs_meeting,
            confidence=float(confidence),
            purpose=(purpose or '').strip() or DEFAULT_PURPOSE,
            urgency=urgency
        )
