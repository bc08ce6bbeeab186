# backend/bookdesk/routes/v1/organization.py
"""
Organization configuration routes - API v1

Endpoints:
    GET /business-hours - Weekly schedule in the organization's timezone
    PUT /business-hours - Replace the weekly schedule (admin)
    GET /booking-settings - Slot grid, booking window and policies
    PUT /booking-settings - Update booking settings (admin)
"""

import asyncio
import logging

from fastapi import APIRouter, Body, Depends

from ...api.dependencies import get_business_hours_service, get_tenant_context
from ...core.enums import PermissionName
from ...core.exceptions import DomainException
from ...core.tenant import TenantContext
from ...models.organization import BookingSettings
from ...schemas.base import ApiResponse
from ...schemas.organization import (
    BookingSettingsResponse,
    BookingSettingsUpdate,
    BusinessHoursDay,
    BusinessHoursResponse,
    BusinessHoursUpdate,
)
from ...services.business_hours_service import (
    BOOKING_SETTINGS_FIELDS,
    BusinessHoursService,
    WeekdayInterval,
)
from .bookings import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["organization-v1"])


def _hours_response(service: BusinessHoursService, ctx: TenantContext) -> BusinessHoursResponse:
    return BusinessHoursResponse(
        timezone=service.get_timezone(ctx),
        days=[BusinessHoursDay.from_interval(day) for day in service.get_week(ctx)],
    )


def _settings_response(row: BookingSettings) -> BookingSettingsResponse:
    return BookingSettingsResponse(**{field: getattr(row, field) for field in BOOKING_SETTINGS_FIELDS})


@router.get("/business-hours", response_model=ApiResponse[BusinessHoursResponse])
async def get_business_hours(
    ctx: TenantContext = Depends(get_tenant_context),
    service: BusinessHoursService = Depends(get_business_hours_service),
) -> ApiResponse[BusinessHoursResponse]:
    try:
        ctx.require(PermissionName.VIEW_BOOKINGS)
        response = await asyncio.to_thread(_hours_response, service, ctx)
        return ApiResponse[BusinessHoursResponse](data=response)
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/business-hours", response_model=ApiResponse[BusinessHoursResponse])
async def update_business_hours(
    payload: BusinessHoursUpdate = Body(...),
    ctx: TenantContext = Depends(get_tenant_context),
    service: BusinessHoursService = Depends(get_business_hours_service),
) -> ApiResponse[BusinessHoursResponse]:
    """Replace the weekly schedule. Weekdays not listed become closed."""
    days = [
        WeekdayInterval(
            weekday=day.weekday,
            open_time=day.open_time,
            close_time=day.close_time,
            is_closed=day.is_closed,
        )
        for day in payload.days
    ]
    try:
        await asyncio.to_thread(service.set_week, ctx, days)
        response = await asyncio.to_thread(_hours_response, service, ctx)
        return ApiResponse[BusinessHoursResponse](data=response)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/booking-settings", response_model=ApiResponse[BookingSettingsResponse])
async def get_booking_settings(
    ctx: TenantContext = Depends(get_tenant_context),
    service: BusinessHoursService = Depends(get_business_hours_service),
) -> ApiResponse[BookingSettingsResponse]:
    try:
        ctx.require(PermissionName.VIEW_BOOKINGS)
        row = await asyncio.to_thread(service.settings, ctx)
        return ApiResponse[BookingSettingsResponse](data=_settings_response(row))
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/booking-settings", response_model=ApiResponse[BookingSettingsResponse])
async def update_booking_settings(
    payload: BookingSettingsUpdate = Body(...),
    ctx: TenantContext = Depends(get_tenant_context),
    service: BusinessHoursService = Depends(get_business_hours_service),
) -> ApiResponse[BookingSettingsResponse]:
    """Update booking settings; only supplied fields change."""
    try:
        row = await asyncio.to_thread(
            service.update_settings, ctx, payload.model_dump(exclude_unset=True)
        )
        return ApiResponse[BookingSettingsResponse](data=_settings_response(row))
    except DomainException as e:
        handle_domain_exception(e)
