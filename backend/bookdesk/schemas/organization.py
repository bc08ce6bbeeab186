# backend/bookdesk/schemas/organization.py
"""Schemas for organization business hours and booking settings."""

from datetime import time
from typing import List, Optional

from pydantic import Field, model_validator

from ..models.organization import WEEKDAY_NAMES
from .base import StandardizedModel, StrictRequestModel


class BusinessHoursDayInput(StrictRequestModel):
    """One weekday of the schedule; 0 is Monday."""

    weekday: int = Field(..., ge=0, le=6)
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    is_closed: bool = False

    @model_validator(mode="after")
    def validate_interval(self) -> "BusinessHoursDayInput":
        if self.is_closed:
            return self
        if self.open_time is None or self.close_time is None:
            raise ValueError("open_time and close_time are required for open days")
        if self.open_time >= self.close_time:
            raise ValueError("open_time must be before close_time")
        return self


class BusinessHoursUpdate(StrictRequestModel):
    """Full weekly schedule; weekdays left out become closed."""

    days: List[BusinessHoursDayInput] = Field(..., max_length=7)


class BusinessHoursDay(StandardizedModel):
    weekday: int
    day_name: str
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    is_closed: bool

    @classmethod
    def from_interval(cls, interval) -> "BusinessHoursDay":
        return cls(
            weekday=interval.weekday,
            day_name=WEEKDAY_NAMES[interval.weekday],
            open_time=interval.open_time if interval.is_open else None,
            close_time=interval.close_time if interval.is_open else None,
            is_closed=not interval.is_open,
        )


class BusinessHoursResponse(StandardizedModel):
    timezone: str
    days: List[BusinessHoursDay]


class BookingSettingsResponse(StandardizedModel):
    slot_minutes: int
    min_lead_minutes: int
    max_horizon_days: int
    allow_overlap_per_staff: bool
    require_approval: bool
    allow_cancellation: bool
    cancellation_window_hours: int


class BookingSettingsUpdate(StrictRequestModel):
    """Partial update; only supplied fields change."""

    slot_minutes: Optional[int] = Field(None, gt=0, le=1440)
    min_lead_minutes: Optional[int] = Field(None, ge=0)
    max_horizon_days: Optional[int] = Field(None, gt=0, le=3650)
    allow_overlap_per_staff: Optional[bool] = None
    require_approval: Optional[bool] = None
    allow_cancellation: Optional[bool] = None
    cancellation_window_hours: Optional[int] = Field(None, ge=0)
