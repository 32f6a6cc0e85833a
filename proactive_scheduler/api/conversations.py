"""Conversations API endpoints."""
from flask import Blueprint, current_app, request, jsonify

from proactive_scheduler.models.database import db_session, Conversation, Message
from proactive_scheduler.proactive.orchestrator import MessageCreatedEvent
from proactive_scheduler.services.messages import ConversationNotFoundError, message_to_dict
from proactive_scheduler.utils.logger import get_logger

bp = Blueprint('conversations', __name__)
logger = get_logger(__name__)


def _services():
    return current_app.extensions['proactive']


def _conversation_to_dict(conversation: Conversation) -> dict:
    return {
        'id': conversation.id,
        'name': conversation.name,
        'participant_ids': conversation.participant_ids or [],
        'participant_names': conversation.participant_names or {},
        'last_message': conversation.last_message,
        'last_message_at': conversation.last_message_at.isoformat() if conversation.last_message_at else None,
        'created_at': conversation.created_at.isoformat(),
        'updated_at': conversation.updated_at.isoformat()
    }


@bp.route('', methods=['POST'])
@bp.route('/', methods=['POST'])
def create_conversation():
    """
    Create a new conversation.

    Request body:
    {
        "name": "Design sync",
        "participant_ids": ["u1", "u2"],
        "participant_names": {"u1": "Ana", "u2": "Ben"}
    }
    """
    data = request.get_json() or {}
    participant_ids = data.get('participant_ids')

    if not isinstance(participant_ids, list) or not participant_ids:
        return jsonify({'error': 'participant_ids must be a non-empty list'}), 400
    if not isinstance(data.get('participant_names', {}), dict):
        return jsonify({'error': 'participant_names must be an object'}), 400

    snapshot = _services().message_store.create_conversation(
        name=data.get('name', 'Conversation'),
        participant_ids=[str(pid) for pid in participant_ids],
        participant_names=data.get('participant_names', {})
    )

    return jsonify({
        'id': snapshot.id,
        'name': snapshot.name,
        'participant_ids': snapshot.participant_ids,
        'participant_names': snapshot.participant_names
    }), 201


@bp.route('/<conversation_id>', methods=['GET'])
def get_conversation(conversation_id):
    """Get a specific conversation."""
    session = db_session()
    try:
        conversation = session.query(Conversation).filter(
            Conversation.id == conversation_id
        ).first()

        if not conversation:
            return jsonify({'error': 'Conversation not found'}), 404

        return jsonify(_conversation_to_dict(conversation))

    finally:
        session.close()


@bp.route('/<conversation_id>/messages', methods=['GET'])
def get_messages(conversation_id):
    """Get messages for a conversation with pagination."""
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('per_page', 50, type=int), 100)

    session = db_session()
    try:
        conversation = session.query(Conversation).filter(
            Conversation.id == conversation_id
        ).first()

        if not conversation:
            return jsonify({'error': 'Conversation not found'}), 404

        total = session.query(Message).filter(
            Message.conversation_id == conversation.id
        ).count()

        messages = session.query(Message).filter(
            Message.conversation_id == conversation.id
        ).order_by(Message.created_at).offset(
            (page - 1) * per_page
        ).limit(per_page).all()

        return jsonify({
            'messages': [message_to_dict(msg) for msg in messages],
            'pagination': {
                'page': page,
                'per_page': per_page,
                'total': total,
                'total_pages': (total + per_page - 1) // per_page
            }
        })

    finally:
        session.close()


@bp.route('/<conversation_id>/messages', methods=['POST'])
def send_message(conversation_id):
    """
    Post a message to a conversation.

    Request body:
    {
        "text": "Can we find time to go over the launch plan?",
        "sender_id": "u1",
        "sender_name": "Ana"
    }

    The message is stored first; scheduling detection is queued afterwards
    and cannot fail or slow down this request.
    """
    data = request.get_json() or {}
    text = data.get('text')
    sender_id = data.get('sender_id') or request.headers.get('X-User-Id')

    if not text or not isinstance(text, str):
        return jsonify({'error': 'text is required'}), 400
    if not sender_id:
        return jsonify({'error': 'sender_id is required'}), 400

    services = _services()
    try:
        message = services.message_store.append_message(
            conversation_id,
            str(sender_id),
            data.get('sender_name'),
            text
        )
        services.message_store.update_last_message(conversation_id, text)
    except ConversationNotFoundError:
        return jsonify({'error': 'Conversation not found'}), 404
    except Exception as e:
        logger.error(f"Error storing message: {e}")
        return jsonify({'error': 'Failed to store message'}), 500

    services.orchestrator.on_message_created(MessageCreatedEvent(
        conversation_id=conversation_id,
        message_id=message['id'],
        text=text,
        sender_id=message['sender_id'],
        sender_name=message['sender_name']
    ))

    return jsonify(message), 201
