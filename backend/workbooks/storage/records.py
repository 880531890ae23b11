"""Conversion between domain objects and stored items."""
from typing import Any, Dict, Iterable, List

from workbooks.models import AccessGrant, Workbook
from .keys import KeySchema, OWNER_ID, USER_ID, WORKBOOK_ID


SHARED_WITH = "shared_with"


def normalize_shared_with(user_ids: Iterable[str]) -> List[str]:
    """Stored form of the sharing set: sorted, unique."""
    return sorted(set(user_ids))


def serialize_workbook(workbook: Workbook, keys: KeySchema) -> Dict[str, Any]:
    item = {
        OWNER_ID: workbook.owner_id,
        WORKBOOK_ID: workbook.id,
        'name': workbook.name,
        'description': workbook.description,
        'source_code': workbook.source_code,
        SHARED_WITH: normalize_shared_with(workbook.shared_with),
        'created_at': workbook.created_at,
    }
    item.update(keys.index_attributes(workbook.owner_id, workbook.id))
    return item


def deserialize_workbook(item: Dict[str, Any]) -> Workbook:
    return Workbook(
        id=item[WORKBOOK_ID],
        owner_id=item[OWNER_ID],
        name=item.get('name', ''),
        description=item.get('description', ''),
        source_code=item.get('source_code', ''),
        shared_with=frozenset(item.get(SHARED_WITH) or []),
        created_at=item.get('created_at'),
    )


def serialize_grant(grant: AccessGrant) -> Dict[str, Any]:
    return {
        WORKBOOK_ID: grant.workbook_id,
        USER_ID: grant.user_id,
        OWNER_ID: grant.owner_id,
        'granted_at': grant.granted_at,
    }


def deserialize_grant(item: Dict[str, Any]) -> AccessGrant:
    return AccessGrant(
        workbook_id=item[WORKBOOK_ID],
        user_id=item[USER_ID],
        owner_id=item[OWNER_ID],
        granted_at=item.get('granted_at'),
    )
