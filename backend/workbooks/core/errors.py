"""
Error taxonomy for the workbook core.

Every failure path raises a distinct class so adapters can map outcomes
(HTTP status codes, retries) without inspecting message text.
"""


class WorkbookError(Exception):
    """Base class for all workbook errors."""


# Validation

class ContentTooLarge(WorkbookError):
    def __init__(self, size: int, limit: int):
        super().__init__(f"source_code is {size} bytes, limit is {limit} bytes")
        self.size = size
        self.limit = limit


class InvalidShareTarget(WorkbookError):
    pass


# Not found

class WorkbookNotFound(WorkbookError):
    def __init__(self, owner_id: str, workbook_id: str):
        super().__init__(f"Workbook '{workbook_id}' not found for owner '{owner_id}'")
        self.owner_id = owner_id
        self.workbook_id = workbook_id


# Conflict

class WorkbookAlreadyExists(WorkbookError):
    def __init__(self, owner_id: str, workbook_id: str):
        super().__init__(f"Workbook '{workbook_id}' already exists for owner '{owner_id}'")
        self.owner_id = owner_id
        self.workbook_id = workbook_id


class AlreadyShared(WorkbookError):
    """Grantee already has access. Callers may treat this as success."""

    def __init__(self, workbook_id: str, grantee_id: str):
        super().__init__(f"Workbook '{workbook_id}' is already shared with '{grantee_id}'")
        self.workbook_id = workbook_id
        self.grantee_id = grantee_id


class ConflictRetryExhausted(WorkbookError):
    def __init__(self, workbook_id: str, attempts: int):
        super().__init__(
            f"Sharing workbook '{workbook_id}' kept conflicting after {attempts} attempts"
        )
        self.workbook_id = workbook_id
        self.attempts = attempts


# Persistence

class PersistenceFailed(WorkbookError):
    """The underlying medium failed. Not retried by the core."""


__all__ = [
    "WorkbookError",
    "ContentTooLarge",
    "InvalidShareTarget",
    "WorkbookNotFound",
    "WorkbookAlreadyExists",
    "AlreadyShared",
    "ConflictRetryExhausted",
    "PersistenceFailed",
]
