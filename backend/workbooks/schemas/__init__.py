from .workbook import (
    RESERVED_WORKBOOK_IDS,
    CreateWorkbookRequest,
    CreateWorkbookResponse,
    ShareWorkbookRequest,
    ShareWorkbookResponse,
    WorkbookResponse,
    ListWorkbooksResponse,
)

__all__ = [
    "RESERVED_WORKBOOK_IDS",
    "CreateWorkbookRequest", "CreateWorkbookResponse",
    "ShareWorkbookRequest", "ShareWorkbookResponse",
    "WorkbookResponse", "ListWorkbooksResponse",
]
