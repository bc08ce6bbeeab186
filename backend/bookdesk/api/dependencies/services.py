# backend/bookdesk/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Each request gets service instances bound to its own session; services
hold no state shared across requests.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.booking_service import BookingService
from ...services.business_hours_service import BusinessHoursService
from ...services.catalog_service import CatalogService
from ...services.slot_engine import SlotEngine
from .database import get_db


def get_catalog_service(db: Session = Depends(get_db)) -> CatalogService:
    return CatalogService(db)


def get_business_hours_service(db: Session = Depends(get_db)) -> BusinessHoursService:
    return BusinessHoursService(db)


def get_booking_service(
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service),
    business_hours: BusinessHoursService = Depends(get_business_hours_service),
) -> BookingService:
    """
    Get booking service instance with its collaborators.

    Args:
        db: Database session
        catalog: Catalog adapter for services, customers, staff and vehicles
        business_hours: Schedule and booking settings lookups

    Returns:
        BookingService instance
    """
    slot_engine = SlotEngine(db, catalog=catalog, business_hours=business_hours)
    return BookingService(
        db, catalog=catalog, business_hours=business_hours, slot_engine=slot_engine
    )
