# backend/courtbook/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import get_current_actor, require_privileged_actor
from .database import get_db
from .services import (
    get_availability_service,
    get_booking_service,
    get_event_publisher,
    get_recurring_booking_service,
)

__all__ = [
    # Auth
    "get_current_actor",
    "require_privileged_actor",
    # Database
    "get_db",
    # Services
    "get_event_publisher",
    "get_availability_service",
    "get_booking_service",
    "get_recurring_booking_service",
]
