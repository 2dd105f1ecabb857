# backend/courtbook/core/exceptions.py
"""
Domain-specific exceptions for the Courtbook booking engine.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when input is missing or malformed."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a resource, booking or group is absent."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class BookingConflictException(ConflictException):
    """Raised when a booking interval overlaps an active booking or its slot is taken."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time slot conflicts with an existing booking",
            code="BOOKING_CONFLICT",
            details=details or {},
        )


class PolicyViolationException(BusinessRuleException):
    """Raised when an establishment policy forbids the operation."""

    def __init__(
        self,
        message: str,
        code: str = "POLICY_VIOLATION",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, details=details)


class CancellationWindowException(PolicyViolationException):
    """Raised when a non-privileged actor cancels too close to the start time."""

    def __init__(self, required_hours: int, hours_until_start: float):
        super().__init__(
            message=f"Bookings can only be cancelled at least {required_hours} hours in advance",
            code="CANCELLATION_WINDOW",
            details={
                "required_hours": required_hours,
                "hours_until_start": round(hours_until_start, 2),
            },
        )


class InvalidStatusTransitionException(BusinessRuleException):
    """Raised when a booking cannot move from its current status to the requested one."""

    def __init__(self, current_status: str, new_status: str):
        super().__init__(
            message=f"Cannot change booking status from {current_status} to {new_status}",
            code="INVALID_STATUS_TRANSITION",
            details={"current_status": current_status, "new_status": new_status},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues or query failures.
    """
