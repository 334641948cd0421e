from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import text
from typing import AsyncGenerator, Optional
import logging
import asyncio
import time
from datetime import datetime, timezone

from app.core.config import settings

logger = logging.getLogger(__name__)


class AsyncDatabaseManager:
    """
    Manages async database connections and sessions.

    Owns the engine and the session factory for the process. Sessions
    handed out by get_async_session() are rolled back on error and always
    closed.
    """

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or settings.async_database_url
        self.async_engine = None
        self.async_session_factory = None
        self._is_initialized = False
        self._initialize_engine()

    def _initialize_engine(self):
        """Initialize the async database engine with pool configuration from settings."""
        try:
            if not self.database_url:
                raise ValueError("Async database URL is not configured")

            logger.info(f"Initializing async database engine with URL: {self.database_url[:50]}...")
            logger.info(f"Environment: {settings.ENVIRONMENT}")

            pool_size = settings.ASYNC_DB_POOL_SIZE
            max_overflow = settings.ASYNC_DB_MAX_OVERFLOW
            if settings.ENVIRONMENT == "development":
                pool_size = min(pool_size, 5)
                max_overflow = min(max_overflow, 5)

            logger.info(f"Pool configuration - Size: {pool_size}, Max Overflow: {max_overflow}, "
                        f"Timeout: {settings.ASYNC_DB_POOL_TIMEOUT}s, Recycle: {settings.ASYNC_DB_POOL_RECYCLE}s")

            self.async_engine = create_async_engine(
                self.database_url,
                echo=settings.ASYNC_DB_ECHO,
                pool_pre_ping=settings.ASYNC_DB_POOL_PRE_PING,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_recycle=settings.ASYNC_DB_POOL_RECYCLE,
                pool_timeout=settings.ASYNC_DB_POOL_TIMEOUT,
                connect_args={
                    "server_settings": {
                        "application_name": "coachdesk_backend_async",
                        "statement_timeout": "300000",
                    },
                    "command_timeout": settings.ASYNC_DB_COMMAND_TIMEOUT,
                }
            )

            self.async_session_factory = async_sessionmaker(
                bind=self.async_engine,
                class_=AsyncSession,
                expire_on_commit=False,  # Keep objects accessible after commit
                autoflush=False,
                autocommit=False,
            )

            self._is_initialized = True
            logger.info("Async database engine initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize async database engine: {e}")
            raise

    async def get_async_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get an async database session with proper lifecycle management.

        Yields:
            AsyncSession: Database session for async operations

        Raises:
            RuntimeError: If the database manager is not initialized
            SQLAlchemyError: For database-related errors
        """
        if not self._is_initialized:
            raise RuntimeError("AsyncDatabaseManager is not initialized")

        async with self.async_session_factory() as session:
            try:
                yield session
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Database error in session: {e}")
                raise
            except Exception as e:
                await session.rollback()
                logger.error(f"Unexpected error in database session: {e}")
                raise
            finally:
                await session.close()

    async def test_connection(self) -> bool:
        """Run SELECT 1 and report whether it succeeded."""
        try:
            async with self.async_session_factory() as session:
                await session.execute(text("SELECT 1"))
                return True
        except SQLAlchemyError as e:
            logger.error(f"Database connection test failed: {e}")
            return False

    async def get_connection_info(self) -> dict:
        if not self.async_engine:
            return {"status": "not_initialized"}

        pool = self.async_engine.pool
        try:
            return {
                "pool_size": pool.size(),
                "checked_in": pool.checkedin(),
                "checked_out": pool.checkedout(),
                "overflow": pool.overflow(),
                "status": "initialized"
            }
        except AttributeError as e:
            # Some pool attributes may not be available in async pools
            logger.warning(f"Some pool attributes not available: {e}")
            return {
                "status": "initialized",
                "pool_type": str(type(pool).__name__),
            }

    async def close(self):
        """Dispose of the engine and all pooled connections."""
        if self.async_engine:
            try:
                await self.async_engine.dispose()
                logger.info("Async database engine disposed successfully")
            finally:
                self._is_initialized = False
                self.async_engine = None
                self.async_session_factory = None


# Global async database manager instance (singleton pattern)
_async_db_manager: Optional[AsyncDatabaseManager] = None
_manager_lock = asyncio.Lock()


async def get_async_db_manager() -> AsyncDatabaseManager:
    """
    Get or create the global async database manager instance.

    Returns:
        AsyncDatabaseManager: The global database manager instance
    """
    global _async_db_manager

    if _async_db_manager is None:
        async with _manager_lock:
            # Double-check locking pattern
            if _async_db_manager is None:
                _async_db_manager = AsyncDatabaseManager()
                logger.info("Created new AsyncDatabaseManager singleton instance")

    return _async_db_manager


async def close_async_db_manager():
    global _async_db_manager

    if _async_db_manager is not None:
        await _async_db_manager.close()
        _async_db_manager = None


# Async dependency injection function for FastAPI
async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for async database session injection.

    The session is rolled back on any exception and closed after use.

    Example:
        @router.get("/budgets/")
        async def list_budgets(db: AsyncSession = Depends(get_async_db)):
            result = await db.execute(select(Budget))
            return result.scalars().all()
    """
    manager = await get_async_db_manager()
    async for session in manager.get_async_session():
        yield session


async def startup_async_database():
    """
    Initialize async database connections on application startup.

    Raises:
        RuntimeError: If the startup connection test fails
    """
    logger.info("Starting async database initialization...")
    manager = await get_async_db_manager()

    connection_test = await manager.test_connection()
    if not connection_test:
        raise RuntimeError("Failed to establish database connection during startup")

    pool_info = await manager.get_connection_info()
    logger.info(f"Async database startup completed. Pool info: {pool_info}")


async def shutdown_async_database():
    """Clean up async database connections on application shutdown."""
    logger.info("Starting async database shutdown...")
    try:
        await close_async_db_manager()
        logger.info("Async database shutdown completed successfully")
    except SQLAlchemyError as e:
        logger.error(f"Error during async database shutdown: {e}")


async def check_async_database_health() -> dict:
    """
    Check connectivity and pool status of the async database.

    Returns:
        dict: Health check results, e.g.
        {
            "status": "healthy",
            "connection_test": True,
            "pool_info": {"pool_size": 5, "checked_in": 4, "checked_out": 1, "overflow": 0},
            "response_time_ms": 15.2,
            "timestamp": "2026-01-15T10:30:00Z"
        }
    """
    start_time = time.time()
    health_status = {
        "status": "unhealthy",
        "connection_test": False,
        "pool_info": {},
        "response_time_ms": 0,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "error": None
    }

    try:
        manager = await get_async_db_manager()

        connection_test = await manager.test_connection()
        health_status["connection_test"] = connection_test

        if not connection_test:
            health_status["error"] = "Database connection test failed"
            return health_status

        health_status["pool_info"] = await manager.get_connection_info()
        health_status["status"] = "healthy"

    except (SQLAlchemyError, RuntimeError, ValueError, OSError) as e:
        health_status["error"] = str(e)
        logger.error(f"Database health check failed: {e}")
    finally:
        health_status["response_time_ms"] = round((time.time() - start_time) * 1000, 2)

    return health_status
