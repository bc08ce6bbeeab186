# backend/bookdesk/services/business_hours_service.py
"""
Business hours and booking-window configuration per organization.

The weekly schedule has one interval per weekday (0 = Monday). Intervals
are half-open ``[open, close)`` on the organization's local calendar and
never cross midnight. Weekdays without a configured open interval are
closed, so an organization that never set its hours accepts no bookings.
"""

from dataclasses import dataclass
from datetime import datetime, time
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.config import settings as app_settings
from ..core.enums import PermissionName
from ..core.exceptions import NotFoundException, ValidationException
from ..core.tenant import TenantContext
from ..core.timezone_utils import to_local
from ..models.organization import BookingSettings, BusinessHours, Organization
from ..repositories.factory import RepositoryFactory
from .base import BaseService

BOOKING_SETTINGS_FIELDS = (
    "slot_minutes",
    "min_lead_minutes",
    "max_horizon_days",
    "allow_overlap_per_staff",
    "require_approval",
    "allow_cancellation",
    "cancellation_window_hours",
)


@dataclass(frozen=True)
class WeekdayInterval:
    weekday: int
    open_time: Optional[time]
    close_time: Optional[time]
    is_closed: bool

    @property
    def is_open(self) -> bool:
        return (
            not self.is_closed
            and self.open_time is not None
            and self.close_time is not None
            and self.open_time < self.close_time
        )

    @classmethod
    def closed(cls, weekday: int) -> "WeekdayInterval":
        return cls(weekday=weekday, open_time=None, close_time=None, is_closed=True)

    @classmethod
    def from_model(cls, row: BusinessHours) -> "WeekdayInterval":
        return cls(
            weekday=row.weekday,
            open_time=row.open_time,
            close_time=row.close_time,
            is_closed=not row.is_open,
        )


def default_booking_settings(organization_id: str) -> BookingSettings:
    """Transient settings row built from configuration defaults."""
    return BookingSettings(
        organization_id=organization_id,
        slot_minutes=app_settings.default_slot_minutes,
        min_lead_minutes=app_settings.default_min_lead_minutes,
        max_horizon_days=app_settings.default_max_horizon_days,
        allow_overlap_per_staff=False,
        require_approval=False,
        allow_cancellation=True,
        cancellation_window_hours=0,
    )


class BusinessHoursService(BaseService):
    """Reads and admin updates of an organization's schedule and booking settings."""

    def __init__(self, db: Session):
        super().__init__(db)

    def get_organization(self, ctx: TenantContext) -> Organization:
        repo = RepositoryFactory.create_organization_repository(self.db)
        organization = repo.get_by_id(ctx.organization_id, load_relationships=False)
        if organization is None:
            raise NotFoundException(
                "Organization not found", details={"organization_id": ctx.organization_id}
            )
        return organization

    def get_timezone(self, ctx: TenantContext) -> str:
        return self.get_organization(ctx).timezone

    def get_week(self, ctx: TenantContext) -> List[WeekdayInterval]:
        """Seven intervals, Monday first; unconfigured weekdays are closed."""
        repo = RepositoryFactory.create_business_hours_repository(self.db, ctx.organization_id)
        by_weekday = {row.weekday: WeekdayInterval.from_model(row) for row in repo.get_week()}
        return [by_weekday.get(day, WeekdayInterval.closed(day)) for day in range(7)]

    def get_day(self, ctx: TenantContext, weekday: int) -> WeekdayInterval:
        repo = RepositoryFactory.create_business_hours_repository(self.db, ctx.organization_id)
        row = repo.get_for_weekday(weekday)
        return WeekdayInterval.from_model(row) if row is not None else WeekdayInterval.closed(weekday)

    def contains(
        self,
        ctx: TenantContext,
        start: datetime,
        end: datetime,
        tz_name: Optional[str] = None,
    ) -> bool:
        """
        True iff ``[start, end)`` lies inside one open weekday interval.

        Both instants are projected to the organization's timezone; the
        interval must stay on a single local date.
        """
        if end <= start:
            return False
        tz_name = tz_name or self.get_timezone(ctx)
        local_start = to_local(start, tz_name)
        local_end = to_local(end, tz_name)
        if local_start.date() != local_end.date():
            return False

        day = self.get_day(ctx, local_start.weekday())
        return interval_within_day(day, local_start.time(), local_end.time())

    def settings(self, ctx: TenantContext) -> BookingSettings:
        repo = RepositoryFactory.create_booking_settings_repository(self.db, ctx.organization_id)
        row = repo.get()
        return row if row is not None else default_booking_settings(ctx.organization_id)

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------

    @BaseService.measure_operation("set_business_hours")
    def set_week(self, ctx: TenantContext, days: Sequence[WeekdayInterval]) -> List[WeekdayInterval]:
        """
        Replace the weekly schedule.

        Weekdays missing from ``days`` become closed. Open days need
        ``open_time < close_time``.
        """
        ctx.require(PermissionName.MANAGE_ORGANIZATION)
        by_weekday: Dict[int, WeekdayInterval] = {}
        for day in days:
            if day.weekday in by_weekday:
                raise ValidationException(
                    "Each weekday may appear only once", details={"weekday": day.weekday}
                )
            if not day.is_closed and not day.is_open:
                raise ValidationException(
                    "Open days need an open time before the close time",
                    details={"weekday": day.weekday},
                )
            by_weekday[day.weekday] = day

        repo = RepositoryFactory.create_business_hours_repository(self.db, ctx.organization_id)
        with self.transaction():
            existing = {row.weekday: row for row in repo.get_week()}
            for weekday in range(7):
                wanted = by_weekday.get(weekday, WeekdayInterval.closed(weekday))
                values = {
                    "open_time": wanted.open_time if wanted.is_open else None,
                    "close_time": wanted.close_time if wanted.is_open else None,
                    "is_closed": not wanted.is_open,
                }
                row = existing.get(weekday)
                if row is None:
                    repo.create(weekday=weekday, **values)
                else:
                    repo.update(row, **values)

        self.log_operation("set_business_hours", organization_id=ctx.organization_id)
        return self.get_week(ctx)

    @BaseService.measure_operation("update_booking_settings")
    def update_settings(self, ctx: TenantContext, changes: Dict[str, Any]) -> BookingSettings:
        ctx.require(PermissionName.MANAGE_ORGANIZATION)
        unknown = sorted(set(changes) - set(BOOKING_SETTINGS_FIELDS))
        if unknown:
            raise ValidationException("Unknown booking settings", details={"fields": unknown})

        repo = RepositoryFactory.create_booking_settings_repository(self.db, ctx.organization_id)
        with self.transaction():
            row = repo.get()
            if row is None:
                defaults = default_booking_settings(ctx.organization_id)
                values = {field: getattr(defaults, field) for field in BOOKING_SETTINGS_FIELDS}
                values.update(changes)
                row = repo.create(**values)
            elif changes:
                repo.update(row, **changes)

        self.log_operation(
            "update_booking_settings",
            organization_id=ctx.organization_id,
            fields=sorted(changes),
        )
        return row


def interval_within_day(day: WeekdayInterval, start: time, end: time) -> bool:
    """``open <= start < close`` and ``end <= close`` on the same local day."""
    if day.is_closed or day.open_time is None or day.close_time is None:
        return False
    return day.open_time <= start < day.close_time and start < end <= day.close_time
