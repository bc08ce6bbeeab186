# backend/bookdesk/services/organization_service.py
"""
Organization provisioning.

A new tenant is created together with its booking settings (from the
configured defaults) and a fully closed weekly schedule.
"""

from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import settings as app_settings
from ..core.enums import OrganizationStatus
from ..core.exceptions import ValidationException
from ..core.timezone_utils import is_valid_timezone
from ..models.organization import BookingSettings, BusinessHours, Organization
from .base import BaseService
from .business_hours_service import BOOKING_SETTINGS_FIELDS, default_booking_settings


class OrganizationService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)

    @BaseService.measure_operation("create_organization")
    def create_organization(
        self,
        name: str,
        timezone: Optional[str] = None,
        status: OrganizationStatus = OrganizationStatus.ACTIVE,
    ) -> Organization:
        tz_name = timezone or app_settings.default_timezone
        if not name or not name.strip():
            raise ValidationException("Organization name is required", details={"field": "name"})
        if not is_valid_timezone(tz_name):
            raise ValidationException("Unknown timezone", details={"timezone": tz_name})

        with self.transaction():
            organization = Organization(name=name.strip(), timezone=tz_name, status=status.value)
            self.db.add(organization)
            self.db.flush()

            defaults = default_booking_settings(organization.id)
            self.db.add(
                BookingSettings(
                    organization_id=organization.id,
                    **{field: getattr(defaults, field) for field in BOOKING_SETTINGS_FIELDS},
                )
            )
            for weekday in range(7):
                self.db.add(
                    BusinessHours(organization_id=organization.id, weekday=weekday, is_closed=True)
                )

        self.log_operation("create_organization", organization_id=organization.id)
        return organization
