# backend/bookdesk/services/slot_engine.py
"""
Available start times for a date, computed from business hours, booking
settings and existing bookings.

Candidates are generated on the ``slot_minutes`` grid from the day's
opening time and must finish by closing time. A candidate is dropped when
it starts before ``now + min_lead_minutes``, when it starts after
``now + max_horizon_days``, or when it would overlap a non-terminal
booking (of the chosen staff member, or of anyone when no staff is given).
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.tenant import TenantContext
from ..core.timezone_utils import local_to_utc
from ..models.booking import Booking
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .business_hours_service import BusinessHoursService
from .catalog_service import CatalogService

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SlotQuery:
    date: date
    service_ids: Sequence[str] = field(default_factory=tuple)
    staff_id: Optional[str] = None


@dataclass(frozen=True)
class SlotResult:
    date: date
    staff_id: Optional[str]
    service_ids: List[str]
    duration_minutes: int
    slots: List[datetime]


def candidate_starts(
    open_at: datetime,
    close_at: datetime,
    duration: timedelta,
    step: timedelta,
) -> List[datetime]:
    """Grid points ``open, open+step, ...`` whose interval ends by ``close``."""
    starts: List[datetime] = []
    current = open_at
    while current + duration <= close_at:
        starts.append(current)
        current += step
    return starts


def remove_overlapping(
    starts: Sequence[datetime],
    duration: timedelta,
    busy: Sequence[Booking],
) -> List[datetime]:
    """Keep starts whose ``[s, s+duration)`` intersects none of ``busy``."""
    free: List[datetime] = []
    for start in starts:
        end = start + duration
        if not any(b.start_time < end and start < b.end_time for b in busy):
            free.append(start)
    return free


class SlotEngine(BaseService):
    """Read-only slot computation; never writes and never locks."""

    def __init__(
        self,
        db: Session,
        catalog: Optional[CatalogService] = None,
        business_hours: Optional[BusinessHoursService] = None,
        clock: Clock = utc_now,
    ):
        super().__init__(db)
        self.catalog = catalog or CatalogService(db)
        self.business_hours = business_hours or BusinessHoursService(db)
        self.clock = clock

    @BaseService.measure_operation("available_slots")
    def available_slots(self, ctx: TenantContext, query: SlotQuery) -> SlotResult:
        ctx.check_deadline("slots.start")
        settings = self.business_hours.settings(ctx)
        service_ids = list(query.service_ids)

        if service_ids:
            services = self.catalog.resolve_services(ctx, service_ids)
            duration_minutes = sum(s.duration_minutes for s in services)
        else:
            duration_minutes = settings.slot_minutes
        self.catalog.resolve_staff(ctx, query.staff_id)

        result = SlotResult(
            date=query.date,
            staff_id=query.staff_id,
            service_ids=service_ids,
            duration_minutes=duration_minutes,
            slots=[],
        )

        day = self.business_hours.get_day(ctx, query.date.weekday())
        if not day.is_open:
            return result

        tz_name = self.business_hours.get_timezone(ctx)
        open_at = local_to_utc(query.date, day.open_time, tz_name)
        close_at = local_to_utc(query.date, day.close_time, tz_name)
        duration = timedelta(minutes=duration_minutes)
        starts = candidate_starts(open_at, close_at, duration, timedelta(minutes=settings.slot_minutes))

        now = self.clock()
        earliest = now + timedelta(minutes=settings.min_lead_minutes)
        latest = now + timedelta(days=settings.max_horizon_days)
        starts = [s for s in starts if earliest <= s <= latest]
        if not starts:
            return result

        ctx.check_deadline("slots.overlaps")
        if query.staff_id is not None and settings.allow_overlap_per_staff:
            busy: List[Booking] = []
        else:
            repo = RepositoryFactory.create_booking_repository(self.db, ctx.organization_id)
            busy = repo.overlaps(starts[0], starts[-1] + duration, staff_id=query.staff_id)

        return SlotResult(
            date=query.date,
            staff_id=query.staff_id,
            service_ids=service_ids,
            duration_minutes=duration_minutes,
            slots=remove_overlapping(starts, duration, busy),
        )
