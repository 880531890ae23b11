from typing import Optional
from .ownership import OwnershipQuery
from .shared_access import SharedAccessQuery
from .sharing import SharingService
from .workbook_service import WorkbookService, validate_source_code
from workbooks.storage import get_storage


_service: Optional[WorkbookService] = None


def get_workbook_service() -> WorkbookService:
    """Get the workbook service bound to the configured store (singleton)"""
    global _service
    
    if _service is None:
        _service = WorkbookService(get_storage())
    
    return _service


__all__ = [
    "OwnershipQuery", "SharedAccessQuery", "SharingService",
    "WorkbookService", "validate_source_code", "get_workbook_service",
]
