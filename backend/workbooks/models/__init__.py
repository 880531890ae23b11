from .workbook import Workbook, AccessGrant

__all__ = ["Workbook", "AccessGrant"]
