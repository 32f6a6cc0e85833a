"""Database models and session management."""
import uuid
from datetime import datetime
from sqlalchemy import create_engine, Column, String, Text, DateTime, Integer, ForeignKey, JSON, Float
from sqlalchemy.orm import declarative_base, sessionmaker, relationship, scoped_session
from sqlalchemy.pool import StaticPool

from proactive_scheduler.config import settings


def _new_id() -> str:
    return str(uuid.uuid4())


def _engine_options(database_url: str) -> dict:
    """Pool options for the configured backend."""
    if database_url.startswith('sqlite'):
        options = {'connect_args': {'check_same_thread': False}}
        if database_url in ('sqlite://', 'sqlite:///:memory:'):
            # One shared connection so every session sees the same in-memory database
            options['poolclass'] = StaticPool
        return options
    return {
        'pool_size': 10,
        'max_overflow': 20,
        'pool_pre_ping': True,
    }


# Create engine
engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **_engine_options(settings.DATABASE_URL)
)

# Create session factory
session_factory = sessionmaker(bind=engine, expire_on_commit=False)
db_session = scoped_session(session_factory)

# Base class for models
Base = declarative_base()


class User(Base):
    """User profile; the timezone drives slot feasibility."""
    __tablename__ = 'users'

    id = Column(String(64), primary_key=True, default=_new_id)
    display_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=True, index=True)
    timezone = Column(String(64), nullable=True)  # IANA zone identifier
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Conversation(Base):
    """Chat conversation between a set of participants."""
    __tablename__ = 'conversations'

    id = Column(String(64), primary_key=True, default=_new_id)
    name = Column(String(255), default="Conversation")
    participant_ids = Column(JSON, default=list)
    participant_names = Column(JSON, default=dict)  # participant id -> display name
    last_message = Column(Text, nullable=True)
    last_message_at = Column(DateTime, nullable=True)
    metadata_ = Column("metadata", JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    messages = relationship("Message", back_populates="conversation", cascade="all, delete-orphan", order_by="Message.created_at")


class Message(Base):
    """Individual message in a conversation."""
    __tablename__ = 'messages'

    id = Column(String(64), primary_key=True, default=_new_id)
    conversation_id = Column(String(64), ForeignKey('conversations.id', ondelete='CASCADE'), nullable=False, index=True)
    sender_id = Column(String(64), nullable=False)
    sender_name = Column(String(255), nullable=True)
    text = Column(Text, nullable=False)
    status = Column(String(20), default='sent')
    read_by = Column(JSON, default=list)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    # Relationships
    conversation = relationship("Conversation", back_populates="messages")


class ProactiveSuggestion(Base):
    """Scheduling suggestion raised from conversation content.

    Rows are append-only; status moves from pending to exactly one terminal
    state (accepted or dismissed).
    """
    __tablename__ = 'proactive_suggestions'

    id = Column(String(64), primary_key=True, default=_new_id)
    type = Column(String(32), default='scheduling', nullable=False)
    conversation_id = Column(String(64), ForeignKey('conversations.id', ondelete='CASCADE'), nullable=False, index=True)
    conversation_name = Column(String(255), nullable=False, default="Conversation")
    participant_ids = Column(JSON, default=list)
    participant_names = Column(JSON, default=dict)
    purpose = Column(Text, nullable=False, default="Discussion")
    urgency = Column(String(20), nullable=False, default='flexible')  # urgent, this-week, flexible
    confidence = Column(Float, nullable=False, default=0.0)
    status = Column(String(20), nullable=False, default='pending', index=True)  # pending, accepted, dismissed
    triggered_by_message_id = Column(String(64), nullable=False, unique=True)
    suggested_time_slots = Column(JSON, default=list)
    time_slots_generated_at = Column(DateTime, nullable=True)
    accepted_time_slot = Column(JSON, nullable=True)
    accepted_at = Column(DateTime, nullable=True)
    accepted_by = Column(String(64), nullable=True)
    announcement_message_id = Column(String(64), nullable=True)
    dismissed_at = Column(DateTime, nullable=True)
    dismissed_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


def init_db():
    """Initialize database tables."""
    Base.metadata.create_all(bind=engine)
