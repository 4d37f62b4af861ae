from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload
from sqlalchemy import select
from contextlib import asynccontextmanager

from fairway.config import Config
from fairway.database.models import (
    Base, Player, Outing, Series
)
from fairway.utils.logger import setup_logger

class Database:
    def __init__(self, database_url: str = None):
        self.logger = setup_logger(__name__)
        self.database_url = database_url
        self.engine = None
        self.async_session = None

    async def initialize(self):
        """Initialize the database connection and create tables"""
        self.logger.info("Initializing database...")

        database_url = Config.get_async_database_url(self.database_url)

        self.engine = create_async_engine(
            database_url,
            echo=Config.DEBUG,
            future=True
        )

        self.async_session = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        # Create all tables
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self.logger.info("Database initialized successfully")

    @asynccontextmanager
    async def get_session(self):
        """Get a database session"""
        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    @asynccontextmanager
    async def transaction(self):
        """
        Create a transaction boundary for atomic operations.

        All operations within the context are committed together on success,
        or rolled back together on failure.

        Usage:
            async with db.transaction() as session:
                outing = await outing_ops.create_outing(..., session=session)
                await series_ops.attach_outing(..., session=session)
                # Both commit together here

        The caller passes the yielded session to every participating
        operation. Exceptions must propagate out of the context for the
        rollback to happen.
        """
        async with self.async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def close(self):
        """Close the database connection"""
        if self.engine:
            await self.engine.dispose()
            self.logger.info("Database connection closed")

    # Read helpers
    async def get_player(self, player_id: str) -> Optional[Player]:
        async with self.get_session() as session:
            return await session.get(Player, player_id)

    async def get_outing(self, outing_id: int) -> Optional[Outing]:
        """Get an outing with its groups loaded"""
        async with self.get_session() as session:
            result = await session.execute(
                select(Outing)
                .options(selectinload(Outing.groups))
                .where(Outing.id == outing_id)
            )
            return result.scalar_one_or_none()

    async def get_series(self, series_id: int) -> Optional[Series]:
        """Get a series with roster and rounds loaded"""
        async with self.get_session() as session:
            result = await session.execute(
                select(Series)
                .options(selectinload(Series.participants), selectinload(Series.rounds))
                .where(Series.id == series_id)
            )
            return result.scalar_one_or_none()

