"""Proactive suggestion API endpoints."""
from flask import Blueprint, current_app, request, jsonify

from proactive_scheduler.proactive.errors import NotAParticipantError, SuggestionError
from proactive_scheduler.utils.logger import get_logger

bp = Blueprint('suggestions', __name__)
logger = get_logger(__name__)


def _services():
    return current_app.extensions['proactive']


def _acting_user(data=None):
    """Caller identity; authentication happens upstream."""
    return request.headers.get('X-User-Id') or (data or {}).get('user_id')


@bp.errorhandler(SuggestionError)
def handle_suggestion_error(error: SuggestionError):
    logger.error(f"Suggestion action failed: {error}")
    return jsonify(error.to_dict()), error.status_code


@bp.route('', methods=['GET'])
@bp.route('/', methods=['GET'])
def list_suggestions():
    """Active (pending, not stale) suggestions for a conversation."""
    conversation_id = request.args.get('conversation_id')
    if not conversation_id:
        return jsonify({'error': 'conversation_id is required'}), 400

    suggestions = _services().suggestion_store.list_active(conversation_id)
    return jsonify({
        'suggestions': [s.to_dict() for s in suggestions]
    })


@bp.route('/<suggestion_id>', methods=['GET'])
def get_suggestion(suggestion_id):
    store = _services().suggestion_store
    suggestion = store.get(suggestion_id)
    payload = suggestion.to_dict()
    payload['is_stale'] = store.is_stale(suggestion)
    return jsonify(payload)


@bp.route('/<suggestion_id>/time-slots', methods=['POST'])
def generate_time_slots(suggestion_id):
    """
    Recompute the suggested time slots.

    Request body (optional):
    {
        "duration": 30
    }
    """
    data = request.get_json(silent=True) or {}
    services = _services()

    suggestion = services.suggestion_store.get(suggestion_id)
    user_id = _acting_user(data)
    if not suggestion.is_participant(user_id):
        raise NotAParticipantError(suggestion_id, user_id)

    try:
        time_slots = services.slot_generator.generate_for_suggestion(
            suggestion_id,
            duration=data.get('duration')
        )
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({
        'suggestion_id': suggestion_id,
        'time_slots': [slot.to_dict() for slot in time_slots],
        'no_common_time': not time_slots
    })


@bp.route('/<suggestion_id>/confirm', methods=['POST'])
def confirm_suggestion(suggestion_id):
    """
    Accept a suggestion and announce the meeting in its conversation.

    Request body:
    {
        "time_slot": {"start_time": "2025-03-06T17:00:00+00:00", "duration": 60}
    }
    """
    data = request.get_json(silent=True) or {}
    user_id = _acting_user(data)
    if not user_id:
        return jsonify({'error': 'X-User-Id header is required'}), 400

    result = _services().confirmation.confirm(suggestion_id, data.get('time_slot'), user_id)
    return jsonify(result.to_dict())


@bp.route('/<suggestion_id>/dismiss', methods=['POST'])
def dismiss_suggestion(suggestion_id):
    data = request.get_json(silent=True) or {}
    user_id = _acting_user(data)
    if not user_id:
        return jsonify({'error': 'X-User-Id header is required'}), 400

    suggestion = _services().suggestion_store.dismiss(suggestion_id, user_id)
    return jsonify(suggestion.to_dict())
