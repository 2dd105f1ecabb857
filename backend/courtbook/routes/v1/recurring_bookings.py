# backend/courtbook/routes/v1/recurring_bookings.py
"""
Recurring booking routes - API v1

Versioned recurring-series endpoints under /api/v1/recurring-bookings.
All business logic delegated to RecurringBookingService.

Endpoints:
    POST /check-availability - Per-date availability with alternatives
    POST / - Create a recurring group and its occurrences
    GET / - Groups of an establishment, filtered by status and client
    GET /{group_id} - Group with its occurrences
    GET /{group_id}/pending-bookings - Remaining occurrences and what is unpaid
    POST /{group_id}/pay - Pay the next (or a given) occurrence
    POST /{group_id}/cancel - Cancel one, some or all remaining occurrences
"""

import asyncio
import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ...api.dependencies import get_current_actor, get_recurring_booking_service
from ...core.actor import Actor
from ...core.enums import RecurringGroupStatus
from ...core.exceptions import DomainException
from ...schemas.booking import BookingResponse
from ...schemas.recurring_booking import (
    PendingOccurrencesResponse,
    PendingOccurrencesSummary,
    RecurringAvailabilityRequest,
    RecurringAvailabilityResponse,
    RecurringCancellationResponse,
    RecurringCancelRequest,
    RecurringGroupCreate,
    RecurringGroupDetailResponse,
    RecurringGroupResponse,
    RecurringPaymentCreate,
    RecurringRefundEstimateResponse,
)
from ...services.recurring_booking_service import RecurringBookingService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["recurring-bookings-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("/check-availability", response_model=RecurringAvailabilityResponse)
async def check_recurring_availability(
    request: RecurringAvailabilityRequest = Body(...),
    actor: Actor = Depends(get_current_actor),
    recurring_service: RecurringBookingService = Depends(get_recurring_booking_service),
) -> RecurringAvailabilityResponse:
    """Check a weekly slot over several dates; unresolved dates are flagged, not fatal."""
    try:
        report = await asyncio.to_thread(
            recurring_service.check_availability,
            request.resource_id,
            request.dates,
            request.start_time,
            request.duration_minutes,
            request.sport,
        )
        return RecurringAvailabilityResponse.model_validate(report)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("", response_model=RecurringGroupDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_recurring_group(
    data: RecurringGroupCreate = Body(...),
    actor: Actor = Depends(get_current_actor),
    recurring_service: RecurringBookingService = Depends(get_recurring_booking_service),
) -> RecurringGroupDetailResponse:
    """Create the series atomically: either every occurrence is booked or none is."""
    try:
        group, bookings = await asyncio.to_thread(recurring_service.create_group, actor, data)
        return RecurringGroupDetailResponse(
            group=RecurringGroupResponse.model_validate(group),
            bookings=[BookingResponse.model_validate(b) for b in bookings],
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("", response_model=List[RecurringGroupResponse])
async def list_recurring_groups(
    establishment_id: str = Query(..., description="Establishment whose series are listed"),
    group_status: Optional[RecurringGroupStatus] = Query(None, alias="status"),
    client_id: Optional[str] = Query(None),
    actor: Actor = Depends(get_current_actor),
    recurring_service: RecurringBookingService = Depends(get_recurring_booking_service),
) -> List[RecurringGroupResponse]:
    try:
        groups = await asyncio.to_thread(
            recurring_service.list_groups, establishment_id, group_status, client_id
        )
        return [RecurringGroupResponse.model_validate(g) for g in groups]
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{group_id}", response_model=RecurringGroupDetailResponse)
async def get_recurring_group(
    group_id: str,
    actor: Actor = Depends(get_current_actor),
    recurring_service: RecurringBookingService = Depends(get_recurring_booking_service),
) -> RecurringGroupDetailResponse:
    try:
        group, bookings = await asyncio.to_thread(recurring_service.get_group, group_id)
        return RecurringGroupDetailResponse(
            group=RecurringGroupResponse.model_validate(group),
            bookings=[BookingResponse.model_validate(b) for b in bookings],
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{group_id}/pending-bookings", response_model=PendingOccurrencesResponse)
async def list_pending_occurrences(
    group_id: str,
    actor: Actor = Depends(get_current_actor),
    recurring_service: RecurringBookingService = Depends(get_recurring_booking_service),
) -> PendingOccurrencesResponse:
    try:
        result = await asyncio.to_thread(recurring_service.list_pending_occurrences, group_id)
        return PendingOccurrencesResponse(
            bookings=[BookingResponse.model_validate(b) for b in result["bookings"]],
            summary=PendingOccurrencesSummary(**result["summary"]),
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{group_id}/pay", response_model=BookingResponse)
async def pay_recurring_occurrence(
    group_id: str,
    payment: RecurringPaymentCreate = Body(...),
    actor: Actor = Depends(get_current_actor),
    recurring_service: RecurringBookingService = Depends(get_recurring_booking_service),
) -> BookingResponse:
    """Pay the earliest unpaid occurrence, or the one named in the request."""
    try:
        booking = await asyncio.to_thread(
            recurring_service.pay_next_occurrence, group_id, actor, payment
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{group_id}/cancel", response_model=RecurringCancellationResponse)
async def cancel_recurring_group(
    group_id: str,
    request: RecurringCancelRequest = Body(...),
    actor: Actor = Depends(get_current_actor),
    recurring_service: RecurringBookingService = Depends(get_recurring_booking_service),
) -> RecurringCancellationResponse:
    try:
        result = await asyncio.to_thread(recurring_service.cancel_group, group_id, actor, request)
        return RecurringCancellationResponse(
            group=RecurringGroupResponse.model_validate(result.group),
            cancelled_bookings=[BookingResponse.model_validate(b) for b in result.cancelled_bookings],
            refund_estimate=RecurringRefundEstimateResponse.model_validate(result.refund_estimate),
        )
    except DomainException as e:
        handle_domain_exception(e)
