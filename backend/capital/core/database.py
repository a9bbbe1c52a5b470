from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from capital.core.config import settings

engine = create_async_engine(
    settings.database_url,
    pool_pre_ping=True,   # checks stale connections
)

SessionLocal = async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as db:
        yield db


@asynccontextmanager
async def transaction(db: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """
    Run a group of statements atomically: commit on success, roll back and re-raise on failure.
    """
    try:
        yield db
        await db.commit()
    except Exception:
        await db.rollback()
        raise
