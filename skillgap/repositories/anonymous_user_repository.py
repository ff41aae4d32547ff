"""
Anonymous user repository - session token → owner id.
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from skillgap.models.anonymous_user import AnonymousUser
from skillgap.models.base import utcnow
from skillgap.repositories.base import BaseRepository


class AnonymousUserRepository(BaseRepository[AnonymousUser]):
    def __init__(self):
        super().__init__(AnonymousUser)

    async def get_by_session_id(
        self,
        db: AsyncSession,
        session_id: str,
    ) -> Optional[AnonymousUser]:
        """Find an anonymous user by session token."""
        result = await db.execute(
            select(AnonymousUser).where(AnonymousUser.session_id == session_id)
        )
        return result.scalar_one_or_none()

    async def touch_or_create(
        self,
        db: AsyncSession,
        session_id: str,
    ) -> AnonymousUser:
        """
        Upsert on sighting: create if absent, otherwise bump last_seen_at.

        Must be called before anything else is pending in the session: a
        concurrent first sighting of the same token loses the unique-index
        race, rolls back and re-reads the winner's row.
        """
        user = await self.get_by_session_id(db, session_id)
        if user is not None:
            user.last_seen_at = utcnow()
            await db.flush()
            return user

        try:
            return await self.create(db, session_id=session_id, last_seen_at=utcnow())
        except IntegrityError:
            await db.rollback()
            user = await self.get_by_session_id(db, session_id)
            if user is None:
                raise
            return user
