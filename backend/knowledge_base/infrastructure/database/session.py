from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, MappedAsDataclass

from ..config.settings import settings

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    future=True,
    pool_size=settings.POSTGRES_POOL_SIZE,
    max_overflow=settings.POSTGRES_MAX_OVERFLOW,
)

local_session = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase, MappedAsDataclass):
    """Declarative base for every table in the knowledge base.

    MappedAsDataclass generates ``__init__``/``__repr__``/``__eq__`` from the
    mapped columns, so models are constructed with keyword arguments and
    server-managed columns are declared ``init=False``.
    """

    pass


async def async_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session for one request.

    Used as a FastAPI dependency via ``Depends(async_session)``; the session is
    closed when the request finishes.
    """
    async with local_session() as db:
        yield db


async def create_tables(bind: AsyncEngine | None = None) -> None:
    """Create the pgvector extension and every mapped table that does not exist yet.

    Idempotent. Existing tables are left untouched, so schema changes still need
    a migration tool.

    Args:
        bind: Engine to use. Defaults to the application engine.
    """
    target = bind or engine
    async with target.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)
