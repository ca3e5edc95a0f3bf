"""PostgreSQL implementations of the intake store repositories."""

from .call_record import PostgreSQLCallRecordRepository
from .case import PostgreSQLCaseRepository
from .instance_registry import PostgreSQLInstanceRegistry
from .provider import PostgreSQLProviderRepository
from .records_request import PostgreSQLRecordsRequestRepository
from .schema import ensure_schema

__all__ = [
    "PostgreSQLCallRecordRepository",
    "PostgreSQLCaseRepository",
    "PostgreSQLInstanceRegistry",
    "PostgreSQLProviderRepository",
    "PostgreSQLRecordsRequestRepository",
    "ensure_schema",
]
