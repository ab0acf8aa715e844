"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking_service import AppointmentStore, BookingService

__all__ = ["AppointmentStore", "BookingService"]
