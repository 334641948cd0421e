"""
Unit tests for database error classification.
"""

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError, OperationalError

from app.services.async_error_handler import AsyncErrorHandler, handle_async_db_errors


def test_integrity_error_is_conflict():
    error_info = AsyncErrorHandler.classify_error(IntegrityError("statement", "params", Exception("orig")))
    assert error_info["status_code"] == 409
    assert not error_info["transient"]


def test_operational_error_is_transient():
    error_info = AsyncErrorHandler.classify_error(OperationalError("statement", "params", Exception("orig")))
    assert error_info["status_code"] == 503
    assert error_info["transient"]


def test_unknown_error_is_internal():
    assert AsyncErrorHandler.classify_error(RuntimeError("boom"))["status_code"] == 500


@pytest.mark.asyncio
async def test_decorator_converts_database_errors():
    @handle_async_db_errors("save budget")
    async def failing():
        raise IntegrityError("statement", "params", Exception("orig"))

    with pytest.raises(HTTPException) as exc_info:
        await failing()
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_decorator_passes_value_errors_through():
    @handle_async_db_errors("save budget")
    async def invalid():
        raise ValueError("Either customer_id or lead_id must be provided")

    with pytest.raises(ValueError):
        await invalid()
