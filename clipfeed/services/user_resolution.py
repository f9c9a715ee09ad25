"""Map external author usernames to internal user records."""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clipfeed.core.logging import get_logger
from clipfeed.models.schema import User

logger = get_logger(__name__)


class UserResolver:
    """Find-or-create users inside the caller's transaction."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def find(self, username: str) -> int | None:
        row = self._db.query(User.id).filter(User.username == username).first()
        return row[0] if row else None

    def find_or_create(self, username: str) -> int:
        """Return the id of the user with ``username``, inserting it if absent.

        The insert runs in a savepoint. If a concurrent writer inserted the
        same username first, the unique constraint rejects ours and the
        existing row wins.
        """
        existing_id = self.find(username)
        if existing_id is not None:
            return existing_id

        try:
            with self._db.begin_nested():
                user = User(username=username, bio="", photo_url="")
                self._db.add(user)
                self._db.flush()
        except IntegrityError:
            winner_id = self.find(username)
            if winner_id is None:
                raise
            logger.info("User %s was created concurrently; reusing id %s", username, winner_id)
            return winner_id

        logger.info(
            "Created user %s for new author",
            user.id,
            extra={
                "component": "user_resolution",
                "operation": "find_or_create",
                "context_data": {"username": username},
            },
        )
        return user.id
