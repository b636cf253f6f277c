"""Pytest configuration and shared fixtures."""

import io
import zipfile
from typing import Any
from xml.sax.saxutils import escape

import pytest
from faker import Faker

from models.edits import MAX_ATTEMPTS, PackageEdit
from repository.exceptions import ConcurrentModificationError
from services.blob_storage_service import InMemoryBlobStore

fake = Faker()

NUSPEC_NAMESPACE = "http://schemas.microsoft.com/packaging/2010/07/nuspec.xsd"

ZIP_DATE = (2013, 5, 1, 12, 0, 0)


# ==============================================================================
# PYTEST CONFIGURATION
# ==============================================================================


def pytest_configure(config: Any) -> None:
    """Register custom markers for test organization."""
    config.addinivalue_line("markers", "domain_archive: Tests for the nupkg archive codec")
    config.addinivalue_line("markers", "domain_backups: Tests for package backups")
    config.addinivalue_line("markers", "domain_edits: Tests for queued package edits")
    config.addinivalue_line("markers", "domain_pipeline: Tests for the edit pipeline")


# ==============================================================================
# ARCHIVE FIXTURES
# ==============================================================================


def build_nuspec(package_id: str, version: str, **metadata: str) -> bytes:
    fields = "".join(f"    <{name}>{escape(value)}</{name}>\n" for name, value in metadata.items())
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        f'<package xmlns="{NUSPEC_NAMESPACE}">\n'
        "  <metadata>\n"
        f"    <id>{package_id}</id>\n"
        f"    <version>{version}</version>\n"
        f"{fields}"
        "    <!-- generated by the test suite -->\n"
        "    <dependencies>\n"
        '      <group targetFramework=".NETFramework4.5">\n'
        '        <dependency id="Newtonsoft.Json" version="6.0.1" />\n'
        "      </group>\n"
        "    </dependencies>\n"
        "  </metadata>\n"
        "</package>\n"
    ).encode("utf-8")


def build_nupkg(
    package_id: str = "Test.Package",
    version: str = "1.0.0",
    *,
    manifest: bytes | None = None,
    entries: list[tuple[str, bytes]] | None = None,
    **metadata: str,
) -> bytes:
    """Build a `.nupkg` archive with a manifest and a few content entries."""
    if entries is None:
        entries = [
            ("_rels/.rels", b'<?xml version="1.0"?><Relationships />'),
            ("lib/net45/Test.Package.dll", bytes(range(256)) * 8),
            ("content/readme.txt", b"Read me.\n"),
            ("package/services/metadata/core-properties/0123abcd.psmdcp", b"<coreProperties />"),
            ("[Content_Types].xml", b'<?xml version="1.0"?><Types />'),
        ]
    if manifest is None:
        manifest = build_nuspec(package_id, version, **metadata)

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, payload in [(f"{package_id}.nuspec", manifest), *entries]:
            info = zipfile.ZipInfo(name, date_time=ZIP_DATE)
            info.compress_type = zipfile.ZIP_DEFLATED
            archive.writestr(info, payload)
    return buffer.getvalue()


@pytest.fixture
def make_nupkg():
    """Factory fixture for building package archives.

    Usage:
        data = make_nupkg("My.Package", "1.0.0", title="Old")
    """
    return build_nupkg


# ==============================================================================
# EDIT FIXTURES
# ==============================================================================


@pytest.fixture
def make_edit():
    """Factory fixture for queued package edits.

    Usage:
        edit = make_edit(title="New")
        edit = make_edit(edit_key=7, package_id="Other.Package", tried_count=2)
    """

    def _create(**overrides: Any) -> PackageEdit:
        data: dict[str, Any] = {
            "edit_key": fake.unique.random_int(min=1, max=10_000_000),
            "package_id": "Test.Package",
            "version": "1.0.0",
            "edit_name": fake.user_name(),
            "tried_count": 0,
        }
        data.update(overrides)
        return PackageEdit(**data)

    return _create


class FakePackageEditsRepository:
    """In-memory stand-in for `PackageEditsRepository`.

    Rows are kept as mutable dicts so tests can inspect `tried_count` and
    `is_completed` after a run.
    """

    def __init__(self, max_attempts: int = MAX_ATTEMPTS) -> None:
        self.max_attempts = max_attempts
        self.rows: dict[int, dict[str, Any]] = {}
        self.calls: list[tuple[str, int]] = []

    def add(self, edit: PackageEdit, *, is_completed: bool = False) -> None:
        self.rows[edit.edit_key] = {"edit": edit, "tried_count": edit.tried_count, "is_completed": is_completed}

    def _snapshot(self, row: dict[str, Any]) -> PackageEdit:
        edit = row["edit"]
        return PackageEdit(
            **{f: getattr(edit, f) for f in edit.__struct_fields__ if f != "tried_count"},
            tried_count=row["tried_count"],
        )

    async def fetch_eligible_edits(self, *, conn: Any = None) -> list[PackageEdit]:
        return [
            self._snapshot(row)
            for row in self.rows.values()
            if not row["is_completed"] and row["tried_count"] < self.max_attempts
        ]

    async def fetch_abandoned_edits(self, *, conn: Any = None) -> list[PackageEdit]:
        return [
            self._snapshot(row)
            for row in self.rows.values()
            if not row["is_completed"] and row["tried_count"] >= self.max_attempts
        ]

    async def mark_attempted(self, edit_key: int, *, conn: Any = None) -> None:
        self.calls.append(("mark_attempted", edit_key))
        if edit_key not in self.rows:
            raise ConcurrentModificationError(table="package_metadatas", key=edit_key, rows_affected=0)
        self.rows[edit_key]["tried_count"] += 1

    async def mark_completed(self, edit_key: int, *, conn: Any = None) -> None:
        self.calls.append(("mark_completed", edit_key))
        if edit_key not in self.rows:
            raise ConcurrentModificationError(table="package_metadatas", key=edit_key, rows_affected=0)
        self.rows[edit_key]["is_completed"] = True


@pytest.fixture
def fake_edits_repo() -> FakePackageEditsRepository:
    """In-memory package edits repository."""
    return FakePackageEditsRepository()


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    """Empty in-memory blob store."""
    return InMemoryBlobStore()
