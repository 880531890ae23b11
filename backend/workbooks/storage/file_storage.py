import asyncio
import copy
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from workbooks.core import settings
from .base import (
    Condition,
    IndexKey,
    PutOperation,
    Record,
    RecordKey,
    RecordStore,
    StoreUnavailable,
    UpdateOperation,
    WriteOperation,
    WriteOutcome,
    evaluate_condition,
)


class FileRecordStore(RecordStore):
    """File-based record store for local development and tests.

    Each table is a single JSON document. Mutations run under an asyncio
    lock owned by the store instance, so a condition and its write are
    atomic per store instance; two instances on the same directory are not
    serialized against each other. A transaction touching several tables
    restores the tables it already saved if a later save fails.
    Filters are evaluated in process after the table is loaded.
    """

    def __init__(self, storage_dir: str = None):
        self.storage_dir = Path(storage_dir or settings.WORKBOOK_STORAGE_DIR)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()

    def _get_file_path(self, table: str) -> Path:
        return self.storage_dir / f"{table}.json"

    @staticmethod
    def _item_id(key: RecordKey) -> str:
        return json.dumps([key.partition[1], key.sort[1]])

    def _load_table(self, table: str) -> Dict[str, Record]:
        file_path = self._get_file_path(table)
        if not file_path.exists():
            return {}
        try:
            with open(file_path, 'r') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise StoreUnavailable(f"Failed to read table '{table}': {e}") from e

    def _save_table(self, table: str, items: Dict[str, Record]) -> None:
        file_path = self._get_file_path(table)
        try:
            # Write to temporary file first (atomic write)
            with tempfile.NamedTemporaryFile(
                mode='w',
                dir=self.storage_dir,
                delete=False,
                suffix='.tmp',
                prefix=f'{table}_'
            ) as f:
                json.dump(items, f, indent=2)
                temp_path = f.name

            # Atomic rename (POSIX guarantees atomicity)
            os.replace(temp_path, file_path)
        except OSError as e:
            raise StoreUnavailable(f"Failed to write table '{table}': {e}") from e

    async def get(self, key: RecordKey) -> Optional[Record]:
        item = self._load_table(key.table).get(self._item_id(key))
        return copy.deepcopy(item) if item is not None else None

    async def put(self, key: RecordKey, record: Record,
                  condition: Optional[Condition] = None) -> WriteOutcome:
        return await self.transact_write([PutOperation(key, record, condition)])

    async def update_attribute(self, key: RecordKey, attribute: str, value: Any,
                               condition: Optional[Condition] = None) -> WriteOutcome:
        return await self.transact_write([UpdateOperation(key, attribute, value, condition)])

    async def query(self, index_key: IndexKey, filter: Optional[Condition] = None) -> List[Record]:
        items = self._load_table(index_key.table).values()
        return [
            copy.deepcopy(item) for item in items
            if item.get(index_key.attribute) == index_key.value
            and evaluate_condition(filter, item)
        ]

    async def scan(self, table: str, filter: Optional[Condition] = None) -> List[Record]:
        return [
            copy.deepcopy(item) for item in self._load_table(table).values()
            if evaluate_condition(filter, item)
        ]

    async def batch_get(self, keys: Sequence[RecordKey]) -> List[Record]:
        results = []
        tables: Dict[str, Dict[str, Record]] = {}
        for key in keys:
            if key.table not in tables:
                tables[key.table] = self._load_table(key.table)
            item = tables[key.table].get(self._item_id(key))
            if item is not None:
                results.append(copy.deepcopy(item))
        return results

    async def transact_write(self, operations: Sequence[WriteOperation]) -> WriteOutcome:
        async with self._lock:
            tables: Dict[str, Dict[str, Record]] = {}
            for op in operations:
                if op.key.table not in tables:
                    tables[op.key.table] = self._load_table(op.key.table)

            # Check every condition before touching anything
            for op in operations:
                current = tables[op.key.table].get(self._item_id(op.key))
                if isinstance(op, UpdateOperation) and current is None:
                    return WriteOutcome.NOT_FOUND
                if not evaluate_condition(op.condition, current):
                    return WriteOutcome.CONDITION_FAILED

            snapshots = copy.deepcopy(tables)
            for op in operations:
                items = tables[op.key.table]
                item_id = self._item_id(op.key)
                if isinstance(op, PutOperation):
                    item = copy.deepcopy(op.record)
                    item.update(op.key.as_dict())
                    items[item_id] = item
                else:
                    items[item_id][op.attribute] = copy.deepcopy(op.value)

            self._commit(tables, snapshots)
            return WriteOutcome.OK

    def _commit(self, tables: Dict[str, Dict[str, Record]],
                snapshots: Dict[str, Dict[str, Record]]) -> None:
        """Save every touched table; on failure put back the ones already saved."""
        saved = []
        try:
            for table, items in tables.items():
                self._save_table(table, items)
                saved.append(table)
        except StoreUnavailable:
            for table in saved:
                self._save_table(table, snapshots[table])
            raise
