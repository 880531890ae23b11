import logging
from typing import List

from workbooks.models import Workbook
from workbooks.storage.base import Contains, RecordStore
from workbooks.storage.keys import KeySchema
from workbooks.storage.records import SHARED_WITH, deserialize_grant, deserialize_workbook


logger = logging.getLogger(__name__)


class SharedAccessQuery:
    """
    Lists workbooks shared with a user.

    With access grants maintained, the grantee index is queried (cost grows
    with the number of grants) and the referenced workbooks are fetched by
    primary key. The embedded shared_with set stays authoritative: a grant
    whose workbook no longer lists the user is dropped.

    Without grants, the whole workbook table is scanned with a
    contains(shared_with, user_id) filter. Cost grows with table size.
    """
    
    def __init__(self, store: RecordStore, keys: KeySchema, use_grants: bool = True):
        self.store = store
        self.keys = keys
        self.use_grants = use_grants
    
    async def list_shared(self, user_id: str) -> List[Workbook]:
        if self.use_grants:
            workbooks = await self._from_grants(user_id)
        else:
            items = await self.store.scan(self.keys.tables.workbooks_table, Contains(SHARED_WITH, user_id))
            workbooks = [deserialize_workbook(item) for item in items]
        
        shared = [wb for wb in workbooks if wb.is_shared_with(user_id) and wb.owner_id != user_id]
        return sorted(shared, key=lambda wb: (wb.owner_id, wb.id))
    
    async def _from_grants(self, user_id: str) -> List[Workbook]:
        grants = [deserialize_grant(item) for item in await self.store.query(self.keys.grantee_index(user_id))]
        if not grants:
            return []
        
        items = await self.store.batch_get([
            self.keys.workbook_key(grant.owner_id, grant.workbook_id) for grant in grants
        ])
        workbooks = [deserialize_workbook(item) for item in items]
        
        stale = len(grants) - sum(1 for wb in workbooks if wb.is_shared_with(user_id))
        if stale:
            logger.warning("Ignoring %d access grant(s) for %s not backed by shared_with", stale, user_id)
        return workbooks
