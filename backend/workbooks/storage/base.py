from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from workbooks.core.errors import PersistenceFailed


Record = Dict[str, Any]


class StoreUnavailable(PersistenceFailed):
    """The persistent medium failed or could not be reached."""


class WriteOutcome(str, Enum):
    """Expected results of a conditional write. Callers branch on these."""
    OK = "ok"
    CONDITION_FAILED = "condition_failed"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class RecordKey:
    """Primary key of one record: table plus partition and sort attributes."""
    table: str
    partition: Tuple[str, str]
    sort: Tuple[str, str]

    def as_dict(self) -> Dict[str, str]:
        return {self.partition[0]: self.partition[1], self.sort[0]: self.sort[1]}


@dataclass(frozen=True)
class IndexKey:
    """Partition value on a secondary index."""
    table: str
    index_name: str
    attribute: str
    value: str


# Conditions and filters

@dataclass(frozen=True)
class AttributeNotExists:
    attribute: str


@dataclass(frozen=True)
class AttributeEquals:
    attribute: str
    value: Any


@dataclass(frozen=True)
class Contains:
    attribute: str
    value: Any


Condition = Union[AttributeNotExists, AttributeEquals, Contains]


def evaluate_condition(condition: Optional[Condition], item: Optional[Record]) -> bool:
    """Evaluate a condition against a stored item (None when absent)."""
    if condition is None:
        return True
    if isinstance(condition, AttributeNotExists):
        return item is None or condition.attribute not in item
    if item is None or condition.attribute not in item:
        return False
    current = item[condition.attribute]
    if isinstance(condition, AttributeEquals):
        return current == condition.value
    if isinstance(condition, Contains):
        try:
            return condition.value in current
        except TypeError:
            return False
    raise TypeError(f"Unsupported condition: {condition!r}")


# Transactional operations

@dataclass(frozen=True)
class PutOperation:
    key: RecordKey
    record: Record
    condition: Optional[Condition] = None


@dataclass(frozen=True)
class UpdateOperation:
    key: RecordKey
    attribute: str
    value: Any
    condition: Optional[Condition] = None


WriteOperation = Union[PutOperation, UpdateOperation]


class RecordStore(ABC):
    """
    Abstract persistence layer for workbook and access-grant records.

    Conditions are evaluated atomically with the write. ConditionFailed and
    NotFound are returned as values; medium failures raise StoreUnavailable.
    """

    @abstractmethod
    async def get(self, key: RecordKey) -> Optional[Record]:
        """Point lookup on the primary key. None when absent."""
        pass

    @abstractmethod
    async def put(self, key: RecordKey, record: Record,
                  condition: Optional[Condition] = None) -> WriteOutcome:
        """Write a whole record, contingent on the optional condition."""
        pass

    @abstractmethod
    async def update_attribute(self, key: RecordKey, attribute: str, value: Any,
                               condition: Optional[Condition] = None) -> WriteOutcome:
        """Replace one attribute of an existing record.

        NOT_FOUND when the record is absent, CONDITION_FAILED when the
        record exists but the condition does not hold.
        """
        pass

    @abstractmethod
    async def query(self, index_key: IndexKey, filter: Optional[Condition] = None) -> List[Record]:
        """All records whose index attribute matches, optionally filtered."""
        pass

    @abstractmethod
    async def scan(self, table: str, filter: Optional[Condition] = None) -> List[Record]:
        """All records in a table, optionally filtered."""
        pass

    @abstractmethod
    async def batch_get(self, keys: Sequence[RecordKey]) -> List[Record]:
        """Point lookups for many keys. Missing records are omitted."""
        pass

    @abstractmethod
    async def transact_write(self, operations: Sequence[WriteOperation]) -> WriteOutcome:
        """Apply all operations or none.

        CONDITION_FAILED when any condition fails or a concurrent
        transaction conflicts.
        """
        pass
