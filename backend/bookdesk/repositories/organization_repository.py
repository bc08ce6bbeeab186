# backend/bookdesk/repositories/organization_repository.py
"""
Data access for the tenant root and its scheduling configuration.
"""

from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException
from ..models.organization import BookingSettings, BusinessHours, Organization
from .base_repository import BaseRepository, TenantRepository


class OrganizationRepository(BaseRepository[Organization]):
    """Organizations are the scope themselves, so only soft deletes are filtered."""

    def __init__(self, db: Session):
        super().__init__(db, Organization)

    def _query(self) -> Query:
        return self.db.query(Organization).filter(Organization.deleted_at.is_(None))


class BusinessHoursRepository(TenantRepository[BusinessHours]):
    def __init__(self, db: Session, organization_id: str):
        super().__init__(db, BusinessHours, organization_id)

    def get_week(self) -> List[BusinessHours]:
        try:
            return self._query().order_by(BusinessHours.weekday).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading business hours: {str(e)}")
            raise RepositoryException(f"Failed to load business hours: {str(e)}")

    def get_for_weekday(self, weekday: int) -> Optional[BusinessHours]:
        try:
            return self._query().filter(BusinessHours.weekday == weekday).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading business hours for weekday {weekday}: {str(e)}")
            raise RepositoryException(f"Failed to load business hours: {str(e)}")


class BookingSettingsRepository(TenantRepository[BookingSettings]):
    def __init__(self, db: Session, organization_id: str):
        super().__init__(db, BookingSettings, organization_id)

    def get(self) -> Optional[BookingSettings]:
        try:
            return self._query().first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading booking settings: {str(e)}")
            raise RepositoryException(f"Failed to load booking settings: {str(e)}")
