"""Shared fixtures for service unit tests.

Repositories and the blob store are mocked with AsyncMock so every awaited
call can be inspected. Scenario tests use the in-memory fakes from the root
conftest instead.
"""

import pytest

from repository.package_edits_repository import PackageEditsRepository
from services.backup_service import BackupService
from services.blob_storage_service import S3BlobStorageService
from services.edit_applier_service import EditApplierService


@pytest.fixture
def mock_edits_repo(mocker):
    """Mock PackageEditsRepository."""
    return mocker.AsyncMock(spec=PackageEditsRepository)


@pytest.fixture
def mock_blob_store(mocker):
    """Mock blob store."""
    return mocker.AsyncMock(spec=S3BlobStorageService)


@pytest.fixture
def mock_backup_service(mocker):
    """Mock BackupService."""
    return mocker.AsyncMock(spec=BackupService)


@pytest.fixture
def mock_edit_applier(mocker):
    """Mock EditApplierService."""
    return mocker.AsyncMock(spec=EditApplierService)
