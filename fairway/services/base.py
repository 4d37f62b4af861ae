"""
Base service class for the outing results pipeline.

Provides async database session management and retry logic for atomic
read-modify-write operations.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from fairway.config import Config
from fairway.utils.pipeline_exceptions import TransactionError

logger = logging.getLogger(__name__)

# Conflicts a fresh attempt can resolve: locked database, concurrent
# version bump, lost creation race on a unique key
RETRYABLE_ERRORS = (OperationalError, StaleDataError, IntegrityError)

class BaseService:
    """Base class for all services with async database session management."""

    def __init__(self, session_factory, max_retries: int = None):
        """
        Initialize base service with session factory.

        Args:
            session_factory: Async session factory from Database class
            max_retries: Attempts for execute_with_retry (Config.DB_MAX_RETRIES)
        """
        self.session_factory = session_factory
        self.max_retries = max_retries if max_retries is not None else Config.DB_MAX_RETRIES

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional scope for async database operations."""
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def execute_with_retry(self, func: Callable, operation: str = None) -> Any:
        """
        Execute a function with automatic retry on transient database errors.

        The function must open its own transaction so every attempt starts
        from freshly read state. Domain errors propagate immediately.

        Raises:
            TransactionError: If every attempt hit a retryable conflict
        """
        operation = operation or getattr(func, '__name__', 'operation')
        for attempt in range(self.max_retries):
            try:
                return await func()
            except RETRYABLE_ERRORS as e:
                if attempt == self.max_retries - 1:
                    raise TransactionError(operation, self.max_retries) from e
                logger.warning(f"Retry attempt {attempt + 1} for {operation}: {e.__class__.__name__}")
                await asyncio.sleep(0.05 * (2 ** attempt))  # Exponential backoff
