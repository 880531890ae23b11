from dataclasses import dataclass, field
from typing import FrozenSet, Optional


@dataclass
class Workbook:
    id: str
    owner_id: str
    name: str = ""
    description: str = ""
    source_code: str = ""
    shared_with: FrozenSet[str] = field(default_factory=frozenset)
    created_at: Optional[str] = None

    def is_shared_with(self, user_id: str) -> bool:
        return user_id in self.shared_with


@dataclass(frozen=True)
class AccessGrant:
    """User `user_id` may see workbook `workbook_id` owned by `owner_id`."""
    workbook_id: str
    user_id: str
    owner_id: str
    granted_at: Optional[str] = None
