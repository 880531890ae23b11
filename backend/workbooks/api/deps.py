from typing import Optional
from fastapi import Header, HTTPException
from workbooks.services import WorkbookService, get_workbook_service


async def get_caller_id(user_id: Optional[str] = Header(default=None, alias="User-ID")) -> str:
    """
    Caller identity from the User-ID header.
    The identifier is trusted as given; a missing or blank header never
    reaches the workbook service.
    """
    if not user_id or not user_id.strip():
        raise HTTPException(status_code=400, detail="Invalid user ID")
    return user_id.strip()


def get_service() -> WorkbookService:
    return get_workbook_service()


__all__ = ["get_caller_id", "get_service"]
