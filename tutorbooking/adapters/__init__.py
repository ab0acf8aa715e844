"""
Adapters layer - Appointment storage and credential integrations.
"""

from .credentials import CredentialStore
from .memory_store import InMemoryAppointmentStore
from .rest_store import RestAppointmentStore

__all__ = ["CredentialStore", "InMemoryAppointmentStore", "RestAppointmentStore"]
