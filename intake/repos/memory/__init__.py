"""
In-memory repository implementations.

Used by the test suite and by the worker when no ``DATABASE_URL`` is set.
State lives in dictionaries on each instance and is lost on restart.
"""

from intake.repos.memory.call_record import MemoryCallRecordRepository
from intake.repos.memory.case import MemoryCaseRepository
from intake.repos.memory.instance_registry import MemoryInstanceRegistry
from intake.repos.memory.provider import MemoryProviderRepository
from intake.repos.memory.records_request import (
    MemoryRecordsRequestRepository,
)

__all__ = [
    "MemoryCallRecordRepository",
    "MemoryCaseRepository",
    "MemoryInstanceRegistry",
    "MemoryProviderRepository",
    "MemoryRecordsRequestRepository",
]
