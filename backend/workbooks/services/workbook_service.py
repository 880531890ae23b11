import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from workbooks.core import settings, TableConfig
from workbooks.core.errors import ContentTooLarge, WorkbookAlreadyExists, WorkbookNotFound
from workbooks.models import AccessGrant, Workbook
from workbooks.storage.base import AttributeNotExists, RecordStore, WriteOutcome
from workbooks.storage.keys import KeySchema, OWNER_ID
from workbooks.storage.records import deserialize_workbook, serialize_workbook
from .ownership import OwnershipQuery
from .shared_access import SharedAccessQuery
from .sharing import SharingService


logger = logging.getLogger(__name__)


def validate_source_code(source_code: str, limit: int) -> None:
    """Reject source code above `limit` UTF-8 bytes (the limit itself is allowed)."""
    size = len(source_code.encode("utf-8"))
    if size > limit:
        raise ContentTooLarge(size, limit)


class WorkbookService:
    """Consumer-facing contract for creating, listing and sharing workbooks."""

    def __init__(
        self,
        store: RecordStore,
        tables: TableConfig = None,
        maintain_grants: bool = None,
        max_share_attempts: int = None,
        share_base_delay: float = None,
        share_max_delay: float = None,
        max_source_code_bytes: int = None,
    ):
        maintain_grants = settings.MAINTAIN_ACCESS_GRANTS if maintain_grants is None else maintain_grants
        self.store = store
        self.keys = KeySchema(tables or settings.table_config)
        self.max_source_code_bytes = (
            settings.MAX_SOURCE_CODE_BYTES if max_source_code_bytes is None else max_source_code_bytes
        )
        self.ownership = OwnershipQuery(store, self.keys)
        self.sharing = SharingService(
            store,
            self.keys,
            maintain_grants=maintain_grants,
            max_attempts=settings.SHARE_MAX_ATTEMPTS if max_share_attempts is None else max_share_attempts,
            base_delay=settings.SHARE_RETRY_BASE_DELAY if share_base_delay is None else share_base_delay,
            max_delay=settings.SHARE_RETRY_MAX_DELAY if share_max_delay is None else share_max_delay,
        )
        self.shared_access = SharedAccessQuery(store, self.keys, use_grants=maintain_grants)

    async def create_workbook(
        self,
        owner_id: str,
        name: str,
        description: str,
        source_code: str,
        workbook_id: Optional[str] = None,
    ) -> str:
        """Create a workbook and return its ID.

        Raises ContentTooLarge before any store access. If the same
        (owner_id, workbook_id) is created twice, the second call raises
        WorkbookAlreadyExists instead of overwriting.
        """
        validate_source_code(source_code, self.max_source_code_bytes)

        workbook = Workbook(
            id=workbook_id or str(uuid.uuid4()),
            owner_id=owner_id,
            name=name,
            description=description,
            source_code=source_code,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        outcome = await self.store.put(
            self.keys.workbook_key(owner_id, workbook.id),
            serialize_workbook(workbook, self.keys),
            AttributeNotExists(OWNER_ID),
        )
        if outcome is not WriteOutcome.OK:
            raise WorkbookAlreadyExists(owner_id, workbook.id)

        logger.info("Created workbook %s/%s", owner_id, workbook.id)
        return workbook.id

    async def get_workbook(self, owner_id: str, workbook_id: str) -> Workbook:
        item = await self.store.get(self.keys.workbook_key(owner_id, workbook_id))
        if item is None:
            raise WorkbookNotFound(owner_id, workbook_id)
        return deserialize_workbook(item)

    async def list_owned(self, owner_id: str) -> List[Workbook]:
        return await self.ownership.list_owned(owner_id)

    async def list_shared(self, user_id: str) -> List[Workbook]:
        return await self.shared_access.list_shared(user_id)

    async def share(self, owner_id: str, workbook_id: str, grantee_id: str) -> AccessGrant:
        return await self.sharing.share(owner_id, workbook_id, grantee_id)
