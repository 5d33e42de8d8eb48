from typing import Generic, TypeVar, Type, Optional, List, Any, Dict, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError

from bodymetrics.utils.logging import get_logger

# Define a generic type for SQLAlchemy models
ModelType = TypeVar("ModelType")

LOGGER = get_logger(__name__)


class BaseRepository(Generic[ModelType]):
    """Base repository implementing common CRUD operations.

    This class provides a standard interface for database interactions,
    reducing boilerplate code in specific repositories.
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        """Initialize the repository.

        Args:
            session: SQLAlchemy async session
            model: The SQLAlchemy model class this repository manages
        """
        self.session = session
        self.model = model
        self.logger = LOGGER

    async def get_by_id(self, id: UUID) -> Optional[ModelType]:
        """Get a record by its ID.

        Args:
            id: The UUID of the record

        Returns:
            The record if found, None otherwise
        """
        try:
            query = select(self.model).where(self.model.id == id)
            result = await self.session.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error retrieving {self.model.__name__} by ID {id}: {str(e)}",
                exc_info=True
            )
            raise

    async def get_all(
        self,
        limit: Optional[int] = 200,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Sequence[Any] = (),
    ) -> List[ModelType]:
        """Get all records with optional filtering and ordering.

        Args:
            limit: Maximum number of records to return, None for no limit
            filters: Dictionary of field_name: value to filter by
            order_by: Column expressions to order by

        Returns:
            List of records
        """
        try:
            query = select(self.model)

            if filters:
                for field, value in filters.items():
                    if hasattr(self.model, field):
                        query = query.where(getattr(self.model, field) == value)

            if order_by:
                query = query.order_by(*order_by)
            if limit is not None:
                query = query.limit(limit)
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error retrieving all {self.model.__name__}: {str(e)}",
                exc_info=True
            )
            raise

    async def create(self, **kwargs) -> ModelType:
        """Create a new record.

        Args:
            **kwargs: Fields and values for the new record

        Returns:
            The created record
        """
        try:
            instance = self.model(**kwargs)
            self.session.add(instance)
            await self.session.flush()
            await self.session.commit()
            return instance
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(
                f"Error creating {self.model.__name__}: {str(e)}",
                exc_info=True
            )
            raise

    async def create_many(self, rows: Sequence[Dict[str, Any]]) -> List[ModelType]:
        """Create several records in one transaction.

        Args:
            rows: Field dictionaries, one per record

        Returns:
            The created records, in input order
        """
        try:
            instances = [self.model(**row) for row in rows]
            self.session.add_all(instances)
            await self.session.flush()
            await self.session.commit()
            return instances
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(
                f"Error creating {len(rows)} {self.model.__name__} rows: {str(e)}",
                exc_info=True
            )
            raise

    async def count(self, *conditions: Any) -> int:
        """Count records matching the given conditions.

        Args:
            *conditions: SQLAlchemy boolean expressions

        Returns:
            Count of matching records
        """
        try:
            query = select(func.count()).select_from(self.model)
            if conditions:
                query = query.where(*conditions)

            result = await self.session.execute(query)
            return result.scalar_one()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error counting {self.model.__name__}: {str(e)}",
                exc_info=True
            )
            raise
