"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability import AvailabilityService, BookingPolicy, RecordStoreProtocol

__all__ = ["AvailabilityService", "BookingPolicy", "RecordStoreProtocol"]
