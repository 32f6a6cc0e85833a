"""Read-only user profile lookups."""
from abc import ABC, abstractmethod
from typing import Optional

from proactive_scheduler.models.database import db_session, User


class ProfileStore(ABC):

    @abstractmethod
    def get_timezone(self, user_id: str) -> Optional[str]:
        """Return the user's IANA timezone identifier, or None when unset."""


class DatabaseProfileStore(ProfileStore):
    """Profile lookups against the users table."""

    def __init__(self, session_factory=None):
        self.session_factory = session_factory or db_session

    def get_timezone(self, user_id: str) -> Optional[str]:
        session = self.session_factory()
        try:
            user = session.query(User).filter(User.id == user_id).first()
            if not user:
                return None
            return user.timezone or None
        finally:
            session.close()
