"""Pytest configuration and shared fixtures for backend tests."""
import pytest
import sys
import os

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from workbooks.core import TableConfig
from workbooks.services import WorkbookService
from workbooks.storage import FileRecordStore, KeySchema


@pytest.fixture
def tables():
    """Table names used across tests."""
    return TableConfig(
        workbooks_table="WorkBookTest",
        owner_index="OwnerIndex",
        grants_table="SharedWorkBookRecordTest",
        grantee_index="GranteeIndex",
    )


@pytest.fixture
def keys(tables):
    return KeySchema(tables)


@pytest.fixture
def store(tmp_path):
    """File-backed record store in a temporary directory."""
    return FileRecordStore(str(tmp_path / "workbooks"))


@pytest.fixture
def service(store, tables):
    """Workbook service maintaining access grants, no retry delay."""
    return WorkbookService(
        store,
        tables,
        maintain_grants=True,
        max_share_attempts=4,
        share_base_delay=0,
        share_max_delay=0,
    )


@pytest.fixture
def scan_service(store, tables):
    """Workbook service using only the embedded shared_with set."""
    return WorkbookService(
        store,
        tables,
        maintain_grants=False,
        max_share_attempts=4,
        share_base_delay=0,
        share_max_delay=0,
    )
