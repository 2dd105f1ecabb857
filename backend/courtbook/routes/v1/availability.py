# backend/courtbook/routes/v1/availability.py
"""
Availability routes - API v1

Endpoints:
    GET /{resource_id}/availability - Slot grid of a resource for a date
"""

import asyncio
from datetime import date
import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...api.dependencies import get_availability_service
from ...core.exceptions import DomainException
from ...schemas.availability import AvailabilitySlotResponse, ResourceAvailabilityResponse
from ...services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["availability-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("/{resource_id}/availability", response_model=ResourceAvailabilityResponse)
async def get_resource_availability(
    resource_id: str,
    target_date: date = Query(..., alias="date", description="Operating date"),
    duration_minutes: int = Query(60, gt=0, le=720),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> ResourceAvailabilityResponse:
    """Ordered slots of the requested duration, flagged booked or free."""
    try:
        slots = await asyncio.to_thread(
            availability_service.get_availability, resource_id, target_date, duration_minutes
        )
    except DomainException as e:
        handle_domain_exception(e)

    return ResourceAvailabilityResponse(
        resource_id=resource_id,
        date=target_date,
        duration_minutes=duration_minutes,
        slots=[AvailabilitySlotResponse.model_validate(slot) for slot in slots],
    )
