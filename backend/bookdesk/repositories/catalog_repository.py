# backend/bookdesk/repositories/catalog_repository.py
"""
Tenant-scoped data access for catalog entities referenced by bookings.
"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import TERMINAL_STATUSES, Booking, BookingServiceLine
from ..models.catalog import Customer, Service, Staff, Vehicle
from .base_repository import TenantRepository


class CustomerRepository(TenantRepository[Customer]):
    def __init__(self, db: Session, organization_id: str):
        super().__init__(db, Customer, organization_id)

    def get_by_email(self, email: str) -> Optional[Customer]:
        try:
            return self._query().filter(func.lower(Customer.email) == email.lower()).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error looking up customer by email: {str(e)}")
            raise RepositoryException(f"Failed to look up customer: {str(e)}")


class VehicleRepository(TenantRepository[Vehicle]):
    def __init__(self, db: Session, organization_id: str):
        super().__init__(db, Vehicle, organization_id)


class StaffRepository(TenantRepository[Staff]):
    def __init__(self, db: Session, organization_id: str):
        super().__init__(db, Staff, organization_id)


class ServiceRepository(TenantRepository[Service]):
    def __init__(self, db: Session, organization_id: str):
        super().__init__(db, Service, organization_id)

    def count_booking_references(self, service_id: str, active_only: bool = True) -> int:
        """Count bookings that reference a service; ``active_only`` skips terminal and deleted ones."""
        try:
            query = (
                self.db.query(func.count(func.distinct(Booking.id)))
                .join(BookingServiceLine, BookingServiceLine.booking_id == Booking.id)
                .filter(
                    Booking.organization_id == self.organization_id,
                    BookingServiceLine.service_id == service_id,
                )
            )
            if active_only:
                query = query.filter(
                    Booking.deleted_at.is_(None),
                    Booking.status.notin_([s.value for s in TERMINAL_STATUSES]),
                )
            return query.scalar() or 0
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting bookings for service {service_id}: {str(e)}")
            raise RepositoryException(f"Failed to count service references: {str(e)}")

    def hard_delete(self, service: Service) -> None:
        try:
            self.db.delete(service)
            self.db.flush()
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting service {service.id}: {str(e)}")
            raise RepositoryException(f"Failed to delete service: {str(e)}")
