from .workbooks import router as workbooks_router

__all__ = ["workbooks_router"]
