# backend/bookdesk/api/dependencies/__init__.py
"""
FastAPI dependencies shared by the v1 routers.
"""

from .auth import get_tenant_context
from .database import get_db
from .services import get_booking_service, get_business_hours_service, get_catalog_service

__all__ = [
    "get_tenant_context",
    "get_db",
    "get_booking_service",
    "get_business_hours_service",
    "get_catalog_service",
]
