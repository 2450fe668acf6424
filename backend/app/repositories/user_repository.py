# backend/app/repositories/user_repository.py
"""
User Repository for the TutorBook backend.
"""

import logging
from typing import Iterable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..database import supports_row_locks
from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)

    def lock_users(self, user_ids: Iterable[str]) -> List[User]:
        """
        Lock the users' rows until the surrounding transaction ends.

        Rows are locked in id order so two transactions locking the same pair
        never deadlock. On SQLite the transaction already holds the write lock.
        """
        ids = sorted(set(user_ids))
        try:
            query = self.db.query(User).filter(User.id.in_(ids)).order_by(User.id)
            if supports_row_locks(self.db):
                query = query.with_for_update()
            return query.all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking users {ids}: {str(e)}")
            raise RepositoryException(f"Failed to lock users: {str(e)}")
