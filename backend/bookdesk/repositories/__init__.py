"""
Repository layer for the booking platform.

Repositories own data access only; transactions belong to services.
"""

from .base_repository import BaseRepository, TenantRepository
from .booking_repository import BookingFilter, BookingRepository, ServiceLineInput
from .catalog_repository import (
    CustomerRepository,
    ServiceRepository,
    StaffRepository,
    VehicleRepository,
)
from .factory import RepositoryFactory
from .organization_repository import (
    BookingSettingsRepository,
    BusinessHoursRepository,
    OrganizationRepository,
)

__all__ = [
    "BaseRepository",
    "BookingFilter",
    "BookingRepository",
    "BookingSettingsRepository",
    "BusinessHoursRepository",
    "CustomerRepository",
    "OrganizationRepository",
    "RepositoryFactory",
    "ServiceLineInput",
    "ServiceRepository",
    "StaffRepository",
    "TenantRepository",
    "VehicleRepository",
]
