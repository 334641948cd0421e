"""
Base service class for async database operations.

Provides the CRUD operations shared by budgets, assignments, plan rows and
snapshots. Database errors are rolled back and re-raised as HTTPException
with the status code chosen by AsyncErrorHandler.
"""

from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete
from sqlalchemy.exc import SQLAlchemyError
from pydantic import BaseModel
import logging

from app.db.base_class import Base
from app.services.async_error_handler import AsyncErrorHandler

# Type variables for generic base service
ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)

logger = logging.getLogger(__name__)


class AsyncBaseService(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """
    Base async service class providing common CRUD operations.

    Write methods take ``commit``; pass ``commit=False`` to stage several
    writes and commit them together.
    """

    def __init__(self, model: Type[ModelType]):
        self.model = model

    def _where(self, stmt, filters: Optional[Dict[str, Any]]):
        """Apply field == value conditions; a list matches any item, None matches NULL."""
        for field, value in (filters or {}).items():
            column = getattr(self.model, field)
            if value is None:
                stmt = stmt.where(column.is_(None))
            elif isinstance(value, (list, tuple, set)):
                stmt = stmt.where(column.in_(list(value)))
            else:
                stmt = stmt.where(column == value)
        return stmt

    async def _fail(self, db: AsyncSession, error: SQLAlchemyError, operation: str):
        await db.rollback()
        raise AsyncErrorHandler.handle_error(error, f"{operation} {self.model.__name__}") from error

    async def get(self, db: AsyncSession, id: Any) -> Optional[ModelType]:
        """
        Get a single record by ID.

        Returns:
            Model instance or None if not found
        """
        try:
            result = await db.execute(select(self.model).where(self.model.id == id))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            await self._fail(db, e, "get")

    async def get_multi(
        self,
        db: AsyncSession,
        *,
        skip: int = 0,
        limit: Optional[int] = 100,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None
    ) -> List[ModelType]:
        """
        Get multiple records with optional filtering, pagination and ordering.

        Args:
            filters: field -> value pairs; a list value matches any of its items
            order_by: Field name to order by (prefix with '-' for descending)
        """
        try:
            stmt = self._where(select(self.model), filters)

            if order_by:
                field_name = order_by.lstrip('-')
                column = getattr(self.model, field_name)
                stmt = stmt.order_by(column.desc() if order_by.startswith('-') else column)

            stmt = stmt.offset(skip)
            if limit is not None:
                stmt = stmt.limit(limit)

            result = await db.execute(stmt)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            await self._fail(db, e, "list")

    async def create(
        self,
        db: AsyncSession,
        *,
        obj_in: Union[CreateSchemaType, Dict[str, Any]],
        commit: bool = True
    ) -> ModelType:
        """Create a new record from a schema or a dict of column values."""
        try:
            obj_in_data = obj_in.model_dump() if isinstance(obj_in, BaseModel) else dict(obj_in)
            db_obj = self.model(**obj_in_data)
            db.add(db_obj)
            if commit:
                await db.commit()
                await db.refresh(db_obj)
            else:
                await db.flush()
            return db_obj
        except SQLAlchemyError as e:
            await self._fail(db, e, "create")

    async def update(
        self,
        db: AsyncSession,
        *,
        db_obj: ModelType,
        obj_in: Union[UpdateSchemaType, Dict[str, Any]],
        commit: bool = True
    ) -> ModelType:
        """Set every given field on an existing record."""
        try:
            obj_data = obj_in.model_dump() if isinstance(obj_in, BaseModel) else obj_in

            for field, value in obj_data.items():
                if hasattr(db_obj, field):
                    setattr(db_obj, field, value)

            if commit:
                await db.commit()
                await db.refresh(db_obj)
            else:
                await db.flush()
            return db_obj
        except SQLAlchemyError as e:
            await self._fail(db, e, "update")

    async def delete(self, db: AsyncSession, *, id: Any, commit: bool = True) -> Optional[ModelType]:
        """
        Delete a record by ID.

        Returns:
            Deleted model instance or None if not found
        """
        obj = await self.get(db, id)
        if obj is None:
            return None
        try:
            await db.delete(obj)
            if commit:
                await db.commit()
            else:
                await db.flush()
            return obj
        except SQLAlchemyError as e:
            await self._fail(db, e, "delete")

    async def delete_where(self, db: AsyncSession, filters: Dict[str, Any], *, commit: bool = True) -> int:
        """Delete every row matching all filters and return the row count."""
        if not any(value is not None for value in filters.values()):
            raise ValueError("delete_where needs at least one filter")
        try:
            result = await db.execute(self._where(delete(self.model), filters))
            if commit:
                await db.commit()
            return result.rowcount
        except SQLAlchemyError as e:
            await self._fail(db, e, "delete")

    async def update_where(
        self,
        db: AsyncSession,
        filters: Dict[str, Any],
        values: Dict[str, Any],
        *,
        commit: bool = True
    ) -> int:
        """Set ``values`` on every row matching all filters and return the row count."""
        if not any(value is not None for value in filters.values()):
            raise ValueError("update_where needs at least one filter")
        try:
            stmt = self._where(update(self.model), filters).values(**values)
            result = await db.execute(stmt)
            if commit:
                await db.commit()
            return result.rowcount
        except SQLAlchemyError as e:
            await self._fail(db, e, "update")
