"""
DB-backed subscription store using async SQLAlchemy.

- upsert   -> UPDATE the owner's row, or INSERT when there is none
- delete   -> DELETE
- list_all -> SELECT ordered by primary key (stable enumeration per tick)

It is *only* used when:
- USE_DB=true
- DATABASE_URL is not "disabled"

Each call opens its own AsyncSession from the session factory so the
scheduler and request handlers never share a session.
"""

from typing import Optional, List

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.errors import StoreUnavailableError
from models.db_models import SubscriptionRow
from models.subscription import Subscription
import logging

logger = logging.getLogger(__name__)


class SubscriptionDBService:
    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def upsert(self, sub: Subscription) -> Subscription:
        """
        Replace the owner's row in place (id is preserved) or insert a new one.

        The UNIQUE index on owner_id turns a lost insert race into an
        IntegrityError; we then retry once, which finds the winner's row and
        updates it, so two concurrent calls never yield two rows.
        """
        try:
            try:
                return await self._upsert_once(sub)
            except IntegrityError:
                logger.info("Concurrent insert for owner=%s, retrying as update", sub.owner_id)
                return await self._upsert_once(sub)
        except SQLAlchemyError as e:
            logger.error("DB upsert error for owner=%s: %s", sub.owner_id, e)
            raise StoreUnavailableError(f"subscription store unavailable: {e}") from e

    async def _upsert_once(self, sub: Subscription) -> Subscription:
        async with self.session_maker() as session:
            try:
                stmt = select(SubscriptionRow).where(SubscriptionRow.owner_id == sub.owner_id)
                result = await session.execute(stmt)
                row = result.scalar_one_or_none()
                if row is None:
                    row = SubscriptionRow(owner_id=sub.owner_id)
                    session.add(row)
                row.latitude = sub.latitude
                row.longitude = sub.longitude
                row.threshold = sub.threshold
                row.email = sub.email or ""
                await session.commit()
                await session.refresh(row)
                return self._to_model(row)
            except SQLAlchemyError:
                await session.rollback()
                raise

    async def list_all(self) -> List[Subscription]:
        """
        SELECT * FROM air_quality_subscriptions ORDER BY id

        An empty table returns []; a DB failure raises StoreUnavailableError.
        """
        try:
            async with self.session_maker() as session:
                result = await session.execute(select(SubscriptionRow).order_by(SubscriptionRow.id))
                return [self._to_model(r) for r in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error("DB list_all error: %s", e)
            raise StoreUnavailableError(f"subscription store unavailable: {e}") from e

    async def get(self, owner_id: str) -> Optional[Subscription]:
        try:
            async with self.session_maker() as session:
                stmt = select(SubscriptionRow).where(SubscriptionRow.owner_id == owner_id)
                row = (await session.execute(stmt)).scalar_one_or_none()
                return self._to_model(row) if row else None
        except SQLAlchemyError as e:
            logger.error("DB get error for owner=%s: %s", owner_id, e)
            raise StoreUnavailableError(f"subscription store unavailable: {e}") from e

    async def delete(self, owner_id: str) -> bool:
        """Hard delete so the row disappears from the table."""
        try:
            async with self.session_maker() as session:
                stmt = select(SubscriptionRow).where(SubscriptionRow.owner_id == owner_id)
                row = (await session.execute(stmt)).scalar_one_or_none()
                if row is None:
                    return False
                await session.delete(row)
                await session.commit()
                return True
        except SQLAlchemyError as e:
            logger.error("DB delete error for owner=%s: %s", owner_id, e)
            raise StoreUnavailableError(f"subscription store unavailable: {e}") from e

    async def ping(self) -> bool:
        try:
            async with self.session_maker() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning("DB ping failed: %s", e)
            return False

    @staticmethod
    def _to_model(row: SubscriptionRow) -> Subscription:
        return Subscription(
            owner_id=row.owner_id,
            latitude=row.latitude,
            longitude=row.longitude,
            threshold=row.threshold,
            email=row.email or "",
            created_at=row.created_at,
            updated_at=row.updated_at,
        )
