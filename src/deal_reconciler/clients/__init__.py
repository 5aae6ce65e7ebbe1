"""Record store clients: the store protocol plus Postgres and in-memory implementations."""

from .memory_store import InMemoryRecordStore
from .postgres_store import PostgresRecordStore
from .store import FilterOp, RecordStore, RowFilter

__all__ = [
    'RecordStore',
    'RowFilter',
    'FilterOp',
    'PostgresRecordStore',
    'InMemoryRecordStore',
]
