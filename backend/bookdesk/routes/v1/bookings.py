# backend/bookdesk/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService.

Endpoints:
    GET /available-slots - Free start times for a date
    GET / - List bookings with filters and pagination
    POST / - Create a booking
    GET /{booking_id} - Full booking details
    PUT /{booking_id} - Update a booking
    PATCH /{booking_id}/status - Change booking status
    DELETE /{booking_id} - Soft-delete a booking
"""

import asyncio
from datetime import date
import logging
from typing import Any, Dict, List, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from fastapi.params import Path

from ...api.dependencies import get_booking_service, get_tenant_context
from ...core.config import settings
from ...core.exceptions import DomainException
from ...core.tenant import TenantContext
from ...models.booking import BookingStatus
from ...schemas.base import ApiResponse
from ...schemas.booking import (
    AvailableSlotsResponse,
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingStatusUpdate,
    BookingUpdate,
)
from ...services.booking_service import BookingListQuery, BookingService
from ...services.slot_engine import SlotQuery

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


# ============================================================================
# SECTION 1: Static routes (no path parameters)
# ============================================================================


@router.get(
    "/available-slots",
    response_model=ApiResponse[AvailableSlotsResponse],
)
async def get_available_slots(
    slot_date: date = Query(..., alias="date", description="Local date (YYYY-MM-DD)"),
    service_ids: Optional[List[str]] = Query(None),
    staff_id: Optional[str] = Query(None),
    ctx: TenantContext = Depends(get_tenant_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> ApiResponse[AvailableSlotsResponse]:
    """
    List free start times for a date in the organization's timezone.

    Without ``staff_id`` a slot is free only when no booking in the
    organization overlaps it.
    """
    try:
        result = await asyncio.to_thread(
            booking_service.available_slots,
            ctx,
            SlotQuery(date=slot_date, service_ids=tuple(service_ids or ()), staff_id=staff_id),
        )
        return ApiResponse[AvailableSlotsResponse](
            data=AvailableSlotsResponse(
                date=result.date,
                staff_id=result.staff_id,
                service_ids=result.service_ids,
                duration_minutes=result.duration_minutes,
                slots=result.slots,
            )
        )
    except DomainException as e:
        handle_domain_exception(e)


# ============================================================================
# SECTION 2: Collection routes
# ============================================================================


@router.get(
    "",
    response_model=ApiResponse[BookingListResponse],
)
async def list_bookings(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    staff_id: Optional[str] = Query(None),
    customer_id: Optional[str] = Query(None),
    service_id: Optional[str] = Query(None),
    vehicle_id: Optional[str] = Query(None),
    q: Optional[str] = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    page_size: int = Query(
        settings.default_page_size, ge=1, le=settings.max_page_size, alias="pageSize"
    ),
    ctx: TenantContext = Depends(get_tenant_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> ApiResponse[BookingListResponse]:
    """List bookings ordered by start time. Date filters are inclusive local dates."""
    try:
        result = await asyncio.to_thread(
            booking_service.list_bookings,
            ctx,
            BookingListQuery(
                date_from=date_from,
                date_to=date_to,
                status=status_filter,
                staff_id=staff_id,
                customer_id=customer_id,
                service_id=service_id,
                vehicle_id=vehicle_id,
                q=q,
                page=page,
                page_size=page_size,
            ),
        )
        return ApiResponse[BookingListResponse](
            data=BookingListResponse(
                items=[BookingResponse.from_booking(b) for b in result.items],
                page=result.page,
                page_size=result.page_size,
                total_count=result.total_count,
                total_pages=result.total_pages,
            )
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "",
    response_model=ApiResponse[BookingResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_booking(
    booking_data: BookingCreate = Body(...),
    ctx: TenantContext = Depends(get_tenant_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> ApiResponse[BookingResponse]:
    """
    Create a booking.

    End time and total price are derived from the selected services. Fails
    with 409 when the staff member already has an overlapping booking.
    """
    try:
        booking = await asyncio.to_thread(booking_service.create_booking, ctx, booking_data)
        return ApiResponse[BookingResponse](data=BookingResponse.from_booking(booking))
    except DomainException as e:
        handle_domain_exception(e)


# ============================================================================
# SECTION 3: Item routes (path parameters)
# ============================================================================


@router.get(
    "/{booking_id}",
    response_model=ApiResponse[BookingResponse],
    responses={404: {"description": "Booking not found"}},
)
async def get_booking(
    booking_id: str = Path(..., description="Booking ULID"),
    ctx: TenantContext = Depends(get_tenant_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> ApiResponse[BookingResponse]:
    try:
        booking = await asyncio.to_thread(booking_service.get_booking, ctx, booking_id)
        return ApiResponse[BookingResponse](data=BookingResponse.from_booking(booking))
    except DomainException as e:
        handle_domain_exception(e)


@router.put(
    "/{booking_id}",
    response_model=ApiResponse[BookingResponse],
)
async def update_booking(
    booking_id: str = Path(..., description="Booking ULID"),
    update_data: BookingUpdate = Body(...),
    ctx: TenantContext = Depends(get_tenant_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> ApiResponse[BookingResponse]:
    """Update a booking; omitted fields are left unchanged."""
    try:
        booking = await asyncio.to_thread(
            booking_service.update_booking, ctx, booking_id, update_data
        )
        return ApiResponse[BookingResponse](data=BookingResponse.from_booking(booking))
    except DomainException as e:
        handle_domain_exception(e)


@router.patch(
    "/{booking_id}/status",
    response_model=ApiResponse[BookingResponse],
)
async def update_booking_status(
    booking_id: str = Path(..., description="Booking ULID"),
    status_data: BookingStatusUpdate = Body(...),
    ctx: TenantContext = Depends(get_tenant_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> ApiResponse[BookingResponse]:
    """Move a booking through its lifecycle; invalid transitions return 409."""
    try:
        booking = await asyncio.to_thread(
            booking_service.set_status, ctx, booking_id, BookingStatus(status_data.status)
        )
        return ApiResponse[BookingResponse](data=BookingResponse.from_booking(booking))
    except DomainException as e:
        handle_domain_exception(e)


@router.delete(
    "/{booking_id}",
    response_model=ApiResponse[Dict[str, Any]],
)
async def delete_booking(
    booking_id: str = Path(..., description="Booking ULID"),
    ctx: TenantContext = Depends(get_tenant_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> ApiResponse[Dict[str, Any]]:
    """Soft-delete a booking. Active bookings can only be deleted by admins."""
    try:
        await asyncio.to_thread(booking_service.delete_booking, ctx, booking_id)
        return ApiResponse[Dict[str, Any]](data={"id": booking_id, "deleted": True})
    except DomainException as e:
        handle_domain_exception(e)
