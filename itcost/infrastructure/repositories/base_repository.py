"""
Base Repository - Repository pattern shared by all entities.
"""
from typing import Generic, TypeVar, Optional, Type
from sqlalchemy.orm import Session

from itcost.models import Base

T = TypeVar('T', bound=Base)


class BaseRepository(Generic[T]):
    """
    Base repository providing common data access operations.

    Type Parameters:
        T: The SQLAlchemy model type this repository manages
    """

    def __init__(self, session: Session, model_class: Type[T]):
        self.session = session
        self.model_class = model_class

    def get_by_id(self, entity_id: int) -> Optional[T]:
        """
        Retrieve an entity by its primary key.

        Returns:
            The entity if found, None otherwise
        """
        return self.session.get(self.model_class, entity_id)

    def add(self, entity: T) -> T:
        """Add a new entity to the session."""
        self.session.add(entity)
        return entity

    def delete(self, entity: T) -> None:
        self.session.delete(entity)

    def count_referencing(self, column, entity_id: int) -> int:
        """
        Count rows of another table whose foreign key column points at entity_id.

        Args:
            column: Mapped foreign key attribute, e.g. Calculation.customer_id
            entity_id: Primary key of an entity managed by this repository
        """
        return self.session.query(column.class_).filter(column == entity_id).count()
