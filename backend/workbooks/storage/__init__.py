from typing import Optional
from .base import (
    RecordStore, RecordKey, IndexKey, WriteOutcome, StoreUnavailable,
    AttributeNotExists, AttributeEquals, Contains,
    PutOperation, UpdateOperation,
)
from .keys import KeySchema
from .file_storage import FileRecordStore
from .dynamodb_storage import DynamoDBRecordStore
from workbooks.core import settings


_storage_backend: Optional[RecordStore] = None


def get_storage() -> RecordStore:
    """Get the configured record store (singleton)"""
    global _storage_backend
    
    if _storage_backend is None:
        if settings.DYNAMODB_ENABLED:
            _storage_backend = DynamoDBRecordStore(settings.table_config)
        else:
            _storage_backend = FileRecordStore()
    
    return _storage_backend


def set_storage(store: Optional[RecordStore]) -> None:
    """Replace the singleton (tests and embedding callers)."""
    global _storage_backend
    _storage_backend = store


__all__ = [
    "RecordStore", "RecordKey", "IndexKey", "WriteOutcome", "StoreUnavailable",
    "AttributeNotExists", "AttributeEquals", "Contains",
    "PutOperation", "UpdateOperation",
    "KeySchema", "FileRecordStore", "DynamoDBRecordStore",
    "get_storage", "set_storage",
]
