from .config import settings, Settings, TableConfig
from .errors import (
    WorkbookError,
    ContentTooLarge,
    InvalidShareTarget,
    WorkbookNotFound,
    WorkbookAlreadyExists,
    AlreadyShared,
    ConflictRetryExhausted,
    PersistenceFailed,
)

__all__ = [
    "settings", "Settings", "TableConfig",
    "WorkbookError", "ContentTooLarge", "InvalidShareTarget",
    "WorkbookNotFound", "WorkbookAlreadyExists", "AlreadyShared",
    "ConflictRetryExhausted", "PersistenceFailed",
]
