"""
Key schema: maps workbook and access-grant identities to storage keys.

Workbook:      (owner_id, workbook_id), owner index on gsi1_pk = owner_id
Access grant:  (workbook_id, user_id), grantee index on user_id
"""
from typing import Dict

from workbooks.core.config import TableConfig
from .base import IndexKey, RecordKey


OWNER_ID = "owner_id"
WORKBOOK_ID = "workbook_id"
USER_ID = "user_id"
OWNER_INDEX_PK = "gsi1_pk"
OWNER_INDEX_SK = "gsi1_sk"


class KeySchema:
    def __init__(self, tables: TableConfig):
        self.tables = tables
    
    def workbook_key(self, owner_id: str, workbook_id: str) -> RecordKey:
        return RecordKey(
            table=self.tables.workbooks_table,
            partition=(OWNER_ID, owner_id),
            sort=(WORKBOOK_ID, workbook_id),
        )
    
    def owner_index(self, owner_id: str) -> IndexKey:
        return IndexKey(
            table=self.tables.workbooks_table,
            index_name=self.tables.owner_index,
            attribute=OWNER_INDEX_PK,
            value=owner_id,
        )
    
    def index_attributes(self, owner_id: str, workbook_id: str) -> Dict[str, str]:
        """Attributes stamped onto a workbook item so the owner index sees it."""
        return {OWNER_INDEX_PK: owner_id, OWNER_INDEX_SK: workbook_id}
    
    def grant_key(self, workbook_id: str, user_id: str) -> RecordKey:
        return RecordKey(
            table=self.tables.grants_table,
            partition=(WORKBOOK_ID, workbook_id),
            sort=(USER_ID, user_id),
        )
    
    def grantee_index(self, user_id: str) -> IndexKey:
        return IndexKey(
            table=self.tables.grants_table,
            index_name=self.tables.grantee_index,
            attribute=USER_ID,
            value=user_id,
        )
