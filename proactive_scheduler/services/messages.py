"""Conversation message store."""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from proactive_scheduler.models.database import db_session, Conversation, Message
from proactive_scheduler.proactive.types import ConversationSnapshot


class ConversationNotFoundError(Exception):
    """Raised when a message targets a conversation that does not exist."""


def _snapshot(conversation: Conversation) -> ConversationSnapshot:
    return ConversationSnapshot(
        id=conversation.id,
        name=conversation.name or "Conversation",
        participant_ids=list(conversation.participant_ids or []),
        participant_names=dict(conversation.participant_names or {})
    )


def message_to_dict(message: Message) -> Dict[str, Any]:
    return {
        'id': message.id,
        'conversation_id': message.conversation_id,
        'sender_id': message.sender_id,
        'sender_name': message.sender_name,
        'text': message.text,
        'status': message.status,
        'read_by': list(message.read_by or []),
        'timestamp': message.created_at.isoformat() if message.created_at else None
    }


class MessageStore:
    """Reads and writes conversations and their messages."""

    def __init__(self, session_factory=None):
        self.session_factory = session_factory or db_session

    def create_conversation(
        self,
        name: str,
        participant_ids: Iterable[str],
        participant_names: Optional[Dict[str, str]] = None
    ) -> ConversationSnapshot:
        session = self.session_factory()
        try:
            conversation = Conversation(
                name=name or "Conversation",
                participant_ids=list(dict.fromkeys(participant_ids)),
                participant_names=dict(participant_names or {}),
                metadata_={}
            )
            session.add(conversation)
            session.commit()
            return _snapshot(conversation)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get_conversation(self, conversation_id: str) -> Optional[ConversationSnapshot]:
        session = self.session_factory()
        try:
            conversation = session.query(Conversation).filter(
                Conversation.id == conversation_id
            ).first()
            return _snapshot(conversation) if conversation else None
        finally:
            session.close()

    def recent_messages(self, conversation_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        """Last ``limit`` messages in chronological order."""
        session = self.session_factory()
        try:
            messages = session.query(Message).filter(
                Message.conversation_id == conversation_id
            ).order_by(Message.created_at.desc(), Message.id.desc()).limit(limit).all()
            return [message_to_dict(msg) for msg in reversed(messages)]
        finally:
            session.close()

    def append_message(
        self,
        conversation_id: str,
        sender_id: str,
        sender_name: Optional[str],
        text: str,
        message_id: Optional[str] = None,
        read_by: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """Store a message and return it.

        Passing an explicit ``message_id`` that already exists returns the
        stored message instead of writing a second copy.
        """
        session = self.session_factory()
        try:
            if message_id:
                existing = session.query(Message).filter(Message.id == message_id).first()
                if existing:
                    return message_to_dict(existing)

            exists = session.query(Conversation.id).filter(
                Conversation.id == conversation_id
            ).first()
            if not exists:
                raise ConversationNotFoundError(f"Conversation not found: {conversation_id}")

            message = Message(
                conversation_id=conversation_id,
                sender_id=sender_id,
                sender_name=sender_name,
                text=text,
                status='sent',
                read_by=list(read_by or [sender_id])
            )
            if message_id:
                message.id = message_id
            session.add(message)
            session.commit()
            return message_to_dict(message)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def update_last_message(
        self,
        conversation_id: str,
        preview: str,
        timestamp: Optional[datetime] = None
    ) -> None:
        session = self.session_factory()
        try:
            conversation = session.query(Conversation).filter(
                Conversation.id == conversation_id
            ).first()
            if not conversation:
                raise ConversationNotFoundError(f"Conversation not found: {conversation_id}")
            conversation.last_message = preview[:100]
            conversation.last_message_at = timestamp or datetime.utcnow()
            conversation.updated_at = datetime.utcnow()
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
