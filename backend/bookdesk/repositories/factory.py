# backend/bookdesk/repositories/factory.py
"""
Repository Factory for the booking platform.

Centralizes repository creation so services receive consistently scoped
instances. Tenant repositories always take the organization id from the
caller's TenantContext.
"""

from sqlalchemy.orm import Session

from .booking_repository import BookingRepository
from .catalog_repository import (
    CustomerRepository,
    ServiceRepository,
    StaffRepository,
    VehicleRepository,
)
from .organization_repository import (
    BookingSettingsRepository,
    BusinessHoursRepository,
    OrganizationRepository,
)


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_organization_repository(db: Session) -> OrganizationRepository:
        return OrganizationRepository(db)

    @staticmethod
    def create_booking_repository(db: Session, organization_id: str) -> BookingRepository:
        return BookingRepository(db, organization_id)

    @staticmethod
    def create_business_hours_repository(db: Session, organization_id: str) -> BusinessHoursRepository:
        return BusinessHoursRepository(db, organization_id)

    @staticmethod
    def create_booking_settings_repository(
        db: Session, organization_id: str
    ) -> BookingSettingsRepository:
        return BookingSettingsRepository(db, organization_id)

    @staticmethod
    def create_customer_repository(db: Session, organization_id: str) -> CustomerRepository:
        return CustomerRepository(db, organization_id)

    @staticmethod
    def create_vehicle_repository(db: Session, organization_id: str) -> VehicleRepository:
        return VehicleRepository(db, organization_id)

    @staticmethod
    def create_staff_repository(db: Session, organization_id: str) -> StaffRepository:
        return StaffRepository(db, organization_id)

    @staticmethod
    def create_service_repository(db: Session, organization_id: str) -> ServiceRepository:
        return ServiceRepository(db, organization_id)
