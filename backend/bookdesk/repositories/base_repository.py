# backend/bookdesk/repositories/base_repository.py
"""
Base Repository Pattern for the booking platform.

Provides the foundation for all repository classes with:
- Common CRUD operations
- Type safety with generics
- Tenant scoping that every query goes through
- Soft-delete awareness

Transactions are owned by the service layer; repositories only flush.
"""

from datetime import datetime, timezone
import logging
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException
from ..database import get_dialect_name

# Type variable for generic model support
T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Concrete base repository with common data access patterns.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        """
        Initialize repository with database session and model.

        Args:
            db: SQLAlchemy session (managed by service layer)
            model: SQLAlchemy model class
        """
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @property
    def dialect_name(self) -> str:
        return get_dialect_name(self.db)

    def _query(self) -> Query:
        """Base query every read starts from; subclasses add scoping."""
        return self.db.query(self.model)

    def _apply_eager_loading(self, query: Query) -> Query:
        """Override to eager load relationships for hydrated reads."""
        return query

    def get_by_id(self, id: str, load_relationships: bool = True) -> Optional[T]:
        """Retrieve an entity by its primary key, or None when absent."""
        try:
            query = self._query().filter(self.model.id == id)
            if load_relationships:
                query = self._apply_eager_loading(query)
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting {self.model.__name__} by id {id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}: {str(e)}")

    def get_by_ids(self, ids: List[str]) -> List[T]:
        if not ids:
            return []
        try:
            return self._query().filter(self.model.id.in_(set(ids))).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting {self.model.__name__} by ids: {str(e)}")
            raise RepositoryException(f"Failed to retrieve {self.model.__name__} list: {str(e)}")

    def create(self, **kwargs: Any) -> T:
        """Add a new entity and flush so generated values are available."""
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()
            self.logger.debug(f"Created {self.model.__name__} {getattr(entity, 'id', None)}")
            return entity
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to create {self.model.__name__}: {str(e)}")

    def update(self, entity: T, **kwargs: Any) -> T:
        """Apply attribute changes to a loaded entity and flush."""
        try:
            for key, value in kwargs.items():
                if not hasattr(entity, key):
                    raise RepositoryException(f"{self.model.__name__} has no attribute {key!r}")
                setattr(entity, key, value)
            self.db.flush()
            return entity
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to update {self.model.__name__}: {str(e)}")

    def find_by(self, **filters: Any) -> List[T]:
        try:
            return self._query().filter_by(**filters).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to find {self.model.__name__}: {str(e)}")

    def find_one_by(self, **filters: Any) -> Optional[T]:
        try:
            return self._query().filter_by(**filters).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to find {self.model.__name__}: {str(e)}")

    def count(self, **filters: Any) -> int:
        try:
            return self._query().filter_by(**filters).count()
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to count {self.model.__name__}: {str(e)}")


class TenantRepository(BaseRepository[T]):
    """
    Repository bound to one organization.

    Every query starts from ``_query()``, which adds the ``organization_id``
    predicate and hides soft-deleted rows. There is no way to construct one
    without an organization id.
    """

    def __init__(self, db: Session, model: Type[T], organization_id: str):
        if not organization_id:
            raise RepositoryException(
                f"{model.__name__} repository requires an organization scope"
            )
        super().__init__(db, model)
        self.organization_id = organization_id

    def _query(self) -> Query:
        return self.db.query(self.model).filter(
            self.model.organization_id == self.organization_id,
            self.model.deleted_at.is_(None),
        )

    def create(self, **kwargs: Any) -> T:
        kwargs["organization_id"] = self.organization_id
        return super().create(**kwargs)

    def soft_delete(self, entity: T) -> T:
        """Mark an entity deleted; it disappears from every scoped query."""
        return self.update(entity, deleted_at=datetime.now(timezone.utc))
