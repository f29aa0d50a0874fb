"""
Async database engine and session management.

Purpose:
- Create SQLAlchemy async engine (MySQL with aiomysql by default)
- Provide async session factory for the subscription store
- Provide Base declarative class for ORM models

Production notes:
- Use connection pooling with appropriate pool_size and max_overflow
- Use Alembic migrations instead of create_all outside local dev
"""
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
import logging
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

Base = declarative_base()


def create_engine_and_sessionmaker(
	url: str,
	echo: bool = False,
) -> Tuple[Optional[AsyncEngine], Optional[async_sessionmaker[AsyncSession]]]:
	"""
	Build the engine + session factory for `url`.

	When the URL is empty or "disabled", return (None, None) so callers fall
	back to the in-memory store.
	"""
	if not url or url.startswith("disabled"):
		logger.warning("DATABASE_URL is 'disabled' – DB engine will not be created; using in-memory store.")
		return None, None

	engine = create_async_engine(url, echo=echo, future=True)
	session_maker = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
	# avoid leaking credentials in logs
	logger.info("Async DB engine created: %s", engine.url.render_as_string(hide_password=True))
	return engine, session_maker


async def create_tables(engine: AsyncEngine) -> None:
	"""Development convenience; production uses Alembic."""
	from models import db_models  # noqa: F401 ensure models are registered

	async with engine.begin() as conn:
		await conn.run_sync(Base.metadata.create_all)
