# backend/courtbook/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService.

Endpoints:
    POST / - Create a booking
    GET /{booking_id} - Booking details
    PATCH /{booking_id}/status - Move a booking through its lifecycle
    POST /{booking_id}/cancel - Cancel a booking and report the refund owed
    PATCH /{booking_id}/move - Move a booking to another time or resource
    POST /{booking_id}/payments - Register a deposit payment
"""

import asyncio
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status

from ...api.dependencies import get_booking_service, get_current_actor, require_privileged_actor
from ...core.actor import Actor
from ...core.enums import BookingStatus
from ...core.exceptions import DomainException
from ...schemas.booking import (
    BookingCancellationResponse,
    BookingCreate,
    BookingReschedule,
    BookingResponse,
    BookingStatusUpdate,
    PaymentCreate,
    RefundEstimateResponse,
)
from ...services.booking_service import BookingService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate = Body(...),
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Create a booking on a court or amenity."""
    try:
        booking = await asyncio.to_thread(booking_service.create_booking, actor, booking_data)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.get_booking, booking_id)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: str,
    update: BookingStatusUpdate = Body(...),
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Apply a lifecycle transition (confirm, check in, complete, no-show, cancel)."""
    try:
        booking = await asyncio.to_thread(
            booking_service.transition_status, booking_id, update.status, actor, update.reason
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/cancel", response_model=BookingCancellationResponse)
async def cancel_booking(
    booking_id: str,
    reason: Optional[str] = Body(None, embed=True, max_length=500),
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingCancellationResponse:
    """Cancel a booking; clients must respect the establishment's notice period."""
    try:
        booking = await asyncio.to_thread(
            booking_service.transition_status,
            booking_id,
            BookingStatus.CANCELLED,
            actor,
            reason,
        )
        estimate = booking_service.estimate_cancellation_refund(booking)
        return BookingCancellationResponse(
            booking=BookingResponse.model_validate(booking),
            refund_estimate=RefundEstimateResponse.model_validate(estimate),
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{booking_id}/move", response_model=BookingResponse)
async def move_booking(
    booking_id: str,
    changes: BookingReschedule = Body(...),
    actor: Actor = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Move a booking to another start time, date, duration or resource."""
    try:
        booking = await asyncio.to_thread(
            booking_service.reschedule_booking, booking_id, actor, changes
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/payments",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register_payment(
    booking_id: str,
    payment: PaymentCreate = Body(...),
    actor: Actor = Depends(require_privileged_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Register a deposit payment (front desk only)."""
    try:
        booking = await asyncio.to_thread(
            booking_service.register_payment, booking_id, actor, payment
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)
