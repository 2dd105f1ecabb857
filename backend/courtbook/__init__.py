"""Courtbook: scheduling and availability engine for sports facility bookings."""

__version__ = "1.0.0"
