"""
Sharing: grants a user access to a workbook.

The only writer of shared_with. Each attempt reads the workbook, then
writes the extended set with a condition that shared_with still holds the
value that was read (compare-and-swap). A concurrent grant makes the
condition fail; the attempt is retried from a fresh read, so no grant is
lost. Retries are bounded.

When access grants are maintained, the grant record is written in the
same transaction as the compare-and-swap, so the two views cannot diverge.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

from workbooks.core.errors import (
    AlreadyShared,
    ConflictRetryExhausted,
    InvalidShareTarget,
    WorkbookNotFound,
)
from workbooks.models import AccessGrant
from workbooks.storage.base import (
    AttributeEquals,
    AttributeNotExists,
    Condition,
    PutOperation,
    RecordStore,
    UpdateOperation,
    WriteOutcome,
)
from workbooks.storage.keys import KeySchema, USER_ID
from workbooks.storage.records import SHARED_WITH, normalize_shared_with, serialize_grant


logger = logging.getLogger(__name__)


class SharingService:

    def __init__(
        self,
        store: RecordStore,
        keys: KeySchema,
        maintain_grants: bool = True,
        max_attempts: int = 4,
        base_delay: float = 0.02,
        max_delay: float = 0.25,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.keys = keys
        self.maintain_grants = maintain_grants
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay

    async def share(self, owner_id: str, workbook_id: str, grantee_id: str) -> AccessGrant:
        """
        Add grantee_id to the workbook's shared_with set.

        Raises:
            InvalidShareTarget: grantee is empty or is the owner
            WorkbookNotFound: no workbook at (owner_id, workbook_id)
            AlreadyShared: grantee already has access
            ConflictRetryExhausted: every attempt lost a race
        """
        if not grantee_id or not grantee_id.strip():
            raise InvalidShareTarget("Grantee user ID is required")
        if grantee_id == owner_id:
            raise InvalidShareTarget("A workbook cannot be shared with its owner")

        key = self.keys.workbook_key(owner_id, workbook_id)
        previous: Optional[List[str]] = None
        overwrite_grant = False

        for attempt in range(1, self.max_attempts + 1):
            item = await self.store.get(key)
            if item is None:
                raise WorkbookNotFound(owner_id, workbook_id)

            current = item.get(SHARED_WITH)
            if grantee_id in (current or []):
                raise AlreadyShared(workbook_id, grantee_id)

            # Same set as the failed attempt: the grant guard tripped on a
            # stray grant record, so overwrite it this time
            if previous is not None and current == previous:
                overwrite_grant = True

            grant = AccessGrant(
                workbook_id=workbook_id,
                user_id=grantee_id,
                owner_id=owner_id,
                granted_at=datetime.now(timezone.utc).isoformat(),
            )
            outcome = await self._write(key, grant, current, overwrite_grant)

            if outcome is WriteOutcome.OK:
                logger.info("Shared workbook %s/%s with %s", owner_id, workbook_id, grantee_id)
                return grant
            if outcome is WriteOutcome.NOT_FOUND:
                raise WorkbookNotFound(owner_id, workbook_id)

            logger.info(
                "Conflict sharing workbook %s/%s with %s (attempt %d/%d)",
                owner_id, workbook_id, grantee_id, attempt, self.max_attempts,
            )
            previous = current
            if attempt < self.max_attempts:
                await asyncio.sleep(self._backoff(attempt))

        logger.warning(
            "Giving up sharing workbook %s/%s with %s after %d attempts",
            owner_id, workbook_id, grantee_id, self.max_attempts,
        )
        raise ConflictRetryExhausted(workbook_id, self.max_attempts)

    async def _write(self, key, grant: AccessGrant, current: Any, overwrite_grant: bool) -> WriteOutcome:
        new_value = normalize_shared_with(list(current or []) + [grant.user_id])
        expected: Condition = (
            AttributeNotExists(SHARED_WITH) if current is None
            else AttributeEquals(SHARED_WITH, current)
        )

        if not self.maintain_grants:
            return await self.store.update_attribute(key, SHARED_WITH, new_value, expected)

        grant_condition = None if overwrite_grant else AttributeNotExists(USER_ID)
        return await self.store.transact_write([
            UpdateOperation(key, SHARED_WITH, new_value, expected),
            PutOperation(
                self.keys.grant_key(grant.workbook_id, grant.user_id),
                serialize_grant(grant),
                grant_condition,
            ),
        ])

    def _backoff(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
