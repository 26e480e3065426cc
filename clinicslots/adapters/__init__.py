"""
Adapters layer - Record store integrations.
"""

from .in_memory_store import InMemoryRecordStore
from .postgrest_store import PostgrestRecordStore
from .records import parse_schedule_document

__all__ = ["InMemoryRecordStore", "PostgrestRecordStore", "parse_schedule_document"]
