from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from workbooks.models import Workbook


# Path segments under /workbooks that are routes, not workbook IDs
RESERVED_WORKBOOK_IDS = {"shared"}


class CreateWorkbookRequest(BaseModel):
    name: str
    description: str = ""
    source_code: str = ""
    workbook_id: Optional[str] = Field(default=None, min_length=1)

    @field_validator("workbook_id")
    @classmethod
    def workbook_id_not_reserved(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value in RESERVED_WORKBOOK_IDS:
            raise ValueError(f"'{value}' is a reserved workbook ID")
        return value


class CreateWorkbookResponse(BaseModel):
    workbook_id: str


class ShareWorkbookRequest(BaseModel):
    user_id: str = Field(min_length=1)

    @field_validator("user_id", mode="before")
    @classmethod
    def strip_user_id(cls, value):
        return value.strip() if isinstance(value, str) else value


class ShareWorkbookResponse(BaseModel):
    message: str
    already_shared: bool = False


class WorkbookResponse(BaseModel):
    id: str
    owner_id: str
    name: str
    description: str
    source_code: str
    shared_with: List[str]
    created_at: Optional[str] = None

    @classmethod
    def from_workbook(cls, workbook: Workbook) -> "WorkbookResponse":
        return cls(
            id=workbook.id,
            owner_id=workbook.owner_id,
            name=workbook.name,
            description=workbook.description,
            source_code=workbook.source_code,
            shared_with=sorted(workbook.shared_with),
            created_at=workbook.created_at,
        )


class ListWorkbooksResponse(BaseModel):
    workbooks: List[WorkbookResponse]
