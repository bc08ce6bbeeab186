# backend/bookdesk/routes/v1/__init__.py
"""
API v1 routes.

Routers here carry no prefix of their own; main.py mounts them under
``/api/v1``.
"""

from . import bookings, organization

__all__ = ["bookings", "organization"]
