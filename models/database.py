from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.config import Settings
from models.models import Base


def get_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(settings.database_url, echo=settings.db_echo)


def get_session_maker(bind: AsyncEngine) -> async_sessionmaker:
    """Sessions keep loaded attributes after commit, rows are converted to
    domain values once the transaction ends."""
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


async def init_db(bind: AsyncEngine) -> None:
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
