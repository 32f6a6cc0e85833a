# Models package
from proactive_scheduler.models.database import (
    db_session,
    engine,
    init_db,
    Base,
    User,
    Conversation,
    Message,
    ProactiveSuggestion
)

__all__ = [
    'db_session',
    'engine',
    'init_db',
    'Base',
    'User',
    'Conversation',
    'Message',
    'ProactiveSuggestion'
]
