from typing import List

from workbooks.models import Workbook
from workbooks.storage.base import RecordStore
from workbooks.storage.keys import KeySchema
from workbooks.storage.records import deserialize_workbook


class OwnershipQuery:
    """Lists workbooks owned by a user through the owner index.

    The index may lag a just-created workbook.
    """
    
    def __init__(self, store: RecordStore, keys: KeySchema):
        self.store = store
        self.keys = keys
    
    async def list_owned(self, owner_id: str) -> List[Workbook]:
        items = await self.store.query(self.keys.owner_index(owner_id))
        workbooks = [deserialize_workbook(item) for item in items]
        # The index partition is the owner; guard against stray index values
        return [wb for wb in workbooks if wb.owner_id == owner_id]
