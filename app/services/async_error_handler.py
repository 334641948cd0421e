"""
Async error handling utilities for database operations.

Database errors are classified into HTTP responses. There is no retry
logic: a failed write is reported and must be repeated by the caller.
"""

import logging
from typing import Any, Callable, Dict
from functools import wraps
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    DisconnectionError,
    TimeoutError as SQLTimeoutError,
    StatementError,
    DataError,
    DatabaseError
)
from fastapi import HTTPException, status
import asyncpg

logger = logging.getLogger(__name__)


class AsyncErrorHandler:
    """
    Maps database errors to HTTP status codes and messages.

    ``transient`` marks errors caused by the connection or the server
    rather than by the request; they are logged as warnings.
    """

    # Order matters: subclasses before DatabaseError
    ERROR_MAPPINGS = {
        IntegrityError: {
            'status_code': status.HTTP_409_CONFLICT,
            'detail': 'Data integrity constraint violation',
            'transient': False
        },
        DisconnectionError: {
            'status_code': status.HTTP_503_SERVICE_UNAVAILABLE,
            'detail': 'Database connection lost',
            'transient': True
        },
        OperationalError: {
            'status_code': status.HTTP_503_SERVICE_UNAVAILABLE,
            'detail': 'Database operation failed',
            'transient': True
        },
        SQLTimeoutError: {
            'status_code': status.HTTP_504_GATEWAY_TIMEOUT,
            'detail': 'Database operation timed out',
            'transient': True
        },
        DataError: {
            'status_code': status.HTTP_400_BAD_REQUEST,
            'detail': 'Invalid data format',
            'transient': False
        },
        DatabaseError: {
            'status_code': status.HTTP_500_INTERNAL_SERVER_ERROR,
            'detail': 'Database error occurred',
            'transient': False
        },
        StatementError: {
            'status_code': status.HTTP_400_BAD_REQUEST,
            'detail': 'Invalid database query',
            'transient': False
        },
    }

    @classmethod
    def classify_error(cls, error: Exception) -> Dict[str, Any]:
        """
        Classify a database error.

        Returns:
            Dictionary with status_code, detail and transient flag
        """
        for exc_type, mapping in cls.ERROR_MAPPINGS.items():
            if isinstance(error, exc_type):
                return mapping.copy()

        if isinstance(error, asyncpg.PostgresError):
            return cls._handle_postgres_error(error)

        return {
            'status_code': status.HTTP_500_INTERNAL_SERVER_ERROR,
            'detail': 'An unexpected database error occurred',
            'transient': False
        }

    @classmethod
    def _handle_postgres_error(cls, error: asyncpg.PostgresError) -> Dict[str, Any]:
        """Handle PostgreSQL-specific errors raised by asyncpg."""
        if isinstance(error, (asyncpg.ConnectionDoesNotExistError,
                              asyncpg.ConnectionFailureError)):
            return {
                'status_code': status.HTTP_503_SERVICE_UNAVAILABLE,
                'detail': 'Database connection failed',
                'transient': True
            }

        if isinstance(error, asyncpg.UniqueViolationError):
            return {
                'status_code': status.HTTP_409_CONFLICT,
                'detail': 'Unique constraint violation',
                'transient': False
            }

        if isinstance(error, asyncpg.ForeignKeyViolationError):
            return {
                'status_code': status.HTTP_409_CONFLICT,
                'detail': 'Foreign key constraint violation',
                'transient': False
            }

        if isinstance(error, asyncpg.CheckViolationError):
            return {
                'status_code': status.HTTP_400_BAD_REQUEST,
                'detail': 'Data validation constraint violation',
                'transient': False
            }

        return {
            'status_code': status.HTTP_500_INTERNAL_SERVER_ERROR,
            'detail': f'PostgreSQL error: {error.sqlstate}',
            'transient': False
        }

    @classmethod
    def handle_error(cls, error: Exception, operation_name: str = "database operation") -> HTTPException:
        """Log a database error and build the HTTPException to raise for it."""
        error_info = cls.classify_error(error)

        if error_info['transient']:
            logger.warning(f"Transient error in {operation_name}: {error}")
        else:
            logger.error(f"Error in {operation_name}: {error}")

        return HTTPException(
            status_code=error_info['status_code'],
            detail=error_info['detail']
        )


def handle_async_db_errors(operation_name: str = "database operation"):
    """
    Decorator turning database errors raised by an async function into HTTPExceptions.

    HTTPException and ValueError raised by the wrapped function pass through.
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except SQLAlchemyError as e:
                raise AsyncErrorHandler.handle_error(e, operation_name) from e
            except asyncpg.PostgresError as e:
                raise AsyncErrorHandler.handle_error(e, operation_name) from e
        return wrapper
    return decorator


@asynccontextmanager
async def async_transaction_rollback(db: AsyncSession):
    """
    Commit on success, roll back and re-raise on error.

    Usage:
        async with async_transaction_rollback(db):
            db.add(plan)
    """
    try:
        yield db
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error(f"Transaction rolled back due to error: {e}")
        raise
