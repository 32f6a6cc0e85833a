"""WebSocket handlers for real-time suggestion updates."""
from flask import request
from flask_socketio import emit, join_room, leave_room

from proactive_scheduler.utils.logger import get_logger

logger = get_logger(__name__)


def register_handlers(socketio):
    """Register WebSocket event handlers."""

    @socketio.on('connect')
    def handle_connect():
        """Handle client connection."""
        logger.info(f"Client connected: {getattr(request, 'sid', 'unknown')}")
        emit('connected', {'status': 'connected'})

    @socketio.on('disconnect')
    def handle_disconnect():
        """Handle client disconnection."""
        logger.info("Client disconnected")

    @socketio.on('join_conversation')
    def handle_join(data):
        """Join a conversation room to receive its suggestion updates."""
        conversation_id = (data or {}).get('conversation_id')
        if conversation_id:
            join_room(conversation_id)
            emit('joined', {'conversation_id': conversation_id})

    @socketio.on('leave_conversation')
    def handle_leave(data):
        """Leave a conversation room."""
        conversation_id = (data or {}).get('conversation_id')
        if conversation_id:
            leave_room(conversation_id)
            emit('left', {'conversation_id': conversation_id})
