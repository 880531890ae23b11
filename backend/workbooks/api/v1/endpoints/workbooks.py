from fastapi import APIRouter, Depends, HTTPException
from workbooks.core.errors import (
    AlreadyShared,
    ConflictRetryExhausted,
    ContentTooLarge,
    InvalidShareTarget,
    PersistenceFailed,
    WorkbookAlreadyExists,
    WorkbookNotFound,
)
from workbooks.schemas import (
    CreateWorkbookRequest, CreateWorkbookResponse,
    ShareWorkbookRequest, ShareWorkbookResponse,
    WorkbookResponse, ListWorkbooksResponse,
)
from workbooks.services import WorkbookService
from workbooks.api.deps import get_caller_id, get_service

router = APIRouter()


def _persistence_error(e: PersistenceFailed) -> HTTPException:
    return HTTPException(status_code=503, detail=f"Workbook storage unavailable: {e}")


@router.post("/", response_model=CreateWorkbookResponse, status_code=201)
async def create_workbook(
    request_body: CreateWorkbookRequest,
    user_id: str = Depends(get_caller_id),
    service: WorkbookService = Depends(get_service)
):
    """Create a workbook owned by the caller"""
    try:
        workbook_id = await service.create_workbook(
            owner_id=user_id,
            name=request_body.name,
            description=request_body.description,
            source_code=request_body.source_code,
            workbook_id=request_body.workbook_id,
        )
    except ContentTooLarge as e:
        raise HTTPException(status_code=400, detail=str(e))
    except WorkbookAlreadyExists as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PersistenceFailed as e:
        raise _persistence_error(e)
    return CreateWorkbookResponse(workbook_id=workbook_id)


@router.get("/", response_model=ListWorkbooksResponse)
async def list_owned_workbooks(
    user_id: str = Depends(get_caller_id),
    service: WorkbookService = Depends(get_service)
):
    """List workbooks owned by the caller"""
    try:
        workbooks = await service.list_owned(user_id)
    except PersistenceFailed as e:
        raise _persistence_error(e)
    return ListWorkbooksResponse(workbooks=[WorkbookResponse.from_workbook(wb) for wb in workbooks])


@router.get("/shared", response_model=ListWorkbooksResponse)
async def list_shared_workbooks(
    user_id: str = Depends(get_caller_id),
    service: WorkbookService = Depends(get_service)
):
    """List workbooks other users have shared with the caller"""
    try:
        workbooks = await service.list_shared(user_id)
    except PersistenceFailed as e:
        raise _persistence_error(e)
    return ListWorkbooksResponse(workbooks=[WorkbookResponse.from_workbook(wb) for wb in workbooks])


@router.get("/{workbook_id}", response_model=WorkbookResponse)
async def get_workbook(
    workbook_id: str,
    user_id: str = Depends(get_caller_id),
    service: WorkbookService = Depends(get_service)
):
    """Get one of the caller's workbooks"""
    try:
        workbook = await service.get_workbook(user_id, workbook_id)
    except WorkbookNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceFailed as e:
        raise _persistence_error(e)
    return WorkbookResponse.from_workbook(workbook)


@router.post("/{workbook_id}/share", response_model=ShareWorkbookResponse)
async def share_workbook(
    workbook_id: str,
    request_body: ShareWorkbookRequest,
    user_id: str = Depends(get_caller_id),
    service: WorkbookService = Depends(get_service)
):
    """Share one of the caller's workbooks with another user"""
    try:
        await service.share(user_id, workbook_id, request_body.user_id)
    except AlreadyShared:
        return ShareWorkbookResponse(message="Workbook already shared", already_shared=True)
    except InvalidShareTarget as e:
        raise HTTPException(status_code=400, detail=str(e))
    except WorkbookNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConflictRetryExhausted as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PersistenceFailed as e:
        raise _persistence_error(e)
    return ShareWorkbookResponse(message="Workbook shared successfully")
