from fastapi import APIRouter
from .endpoints import workbooks_router

api_router = APIRouter()

api_router.include_router(workbooks_router, prefix="/workbooks", tags=["workbooks"])
