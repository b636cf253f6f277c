import asyncio
import io
import logging
from typing import Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from models.edits import CopyState, CopyStatus
from utilities.config import StorageConfig

logger = logging.getLogger(__name__)

NUPKG_CONTENT_TYPE = "application/octet-stream"

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


def _is_missing(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") in _MISSING_CODES


class BlobStore(Protocol):
    """Object store holding package archives."""

    async def exists(self, name: str) -> bool: ...

    async def start_copy(self, source: str, destination: str) -> CopyState: ...

    async def get_copy_state(self, name: str) -> CopyState: ...

    async def download(self, name: str) -> bytes: ...

    async def upload(self, name: str, data: bytes) -> None: ...


class S3BlobStorageService:
    def __init__(self, config: StorageConfig, client: object | None = None) -> None:
        """Initialize the S3BlobStorageService.

        Args:
            config: Storage settings (endpoint, bucket, region).
            client: Preconfigured boto3 S3 client; one is built from `config` if omitted.
        """
        self.bucket = config.bucket
        # Custom endpoints (MinIO, R2) need path-style addressing
        self.client = client or boto3.client(
            service_name="s3",
            endpoint_url=config.endpoint_url,
            region_name=config.region,
            config=Config(s3={"addressing_style": "path"}),
        )

    def _exists(self, name: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=name)
        except ClientError as e:
            if _is_missing(e):
                return False
            raise
        return True

    async def exists(self, name: str) -> bool:
        """Check whether an object exists.

        Args:
            name (str): Object key.
        """
        return await asyncio.to_thread(self._exists, name)

    def _copy(self, source: str, destination: str) -> CopyState:
        try:
            self.client.copy_object(
                Bucket=self.bucket,
                Key=destination,
                CopySource={"Bucket": self.bucket, "Key": source},
                MetadataDirective="COPY",
            )
        except ClientError as e:
            error = e.response.get("Error", {})
            return CopyState(CopyStatus.FAILED, f"{error.get('Code', 'Unknown')}: {error.get('Message', str(e))}")
        return CopyState(CopyStatus.SUCCESS)

    async def start_copy(self, source: str, destination: str) -> CopyState:
        """Copy one object onto another inside the bucket.

        S3 copies complete within the request, so the returned state is terminal.

        Args:
            source (str): Key to copy from.
            destination (str): Key to copy to.
        """
        return await asyncio.to_thread(self._copy, source, destination)

    async def get_copy_state(self, name: str) -> CopyState:
        """Return the copy state of a destination object.

        Args:
            name (str): Destination key of an earlier copy.
        """
        if await self.exists(name):
            return CopyState(CopyStatus.SUCCESS)
        return CopyState(CopyStatus.FAILED, f"Copy destination {name} does not exist")

    def _download(self, name: str) -> bytes:
        buffer = io.BytesIO()
        self.client.download_fileobj(self.bucket, name, buffer)
        return buffer.getvalue()

    async def download(self, name: str) -> bytes:
        """Download an object into memory.

        Args:
            name (str): Object key.
        """
        return await asyncio.to_thread(self._download, name)

    def _upload(self, name: str, data: bytes) -> None:
        self.client.upload_fileobj(
            io.BytesIO(data),
            self.bucket,
            name,
            ExtraArgs={"ContentType": NUPKG_CONTENT_TYPE},
        )

    async def upload(self, name: str, data: bytes) -> None:
        """Upload bytes to an object, overwriting it.

        Args:
            name (str): Object key.
            data (bytes): New object content.
        """
        await asyncio.to_thread(self._upload, name, data)


class InMemoryBlobStore:
    """Blob store kept in a dict, for tests and local runs.

    Copies finish immediately unless states are queued with `script_copy`,
    in which case `get_copy_state` hands them out one poll at a time and the
    copy lands once a success state is reached.
    """

    def __init__(self, blobs: dict[str, bytes] | None = None) -> None:
        self.blobs: dict[str, bytes] = dict(blobs or {})
        self.copies: list[tuple[str, str]] = []
        self.uploads: list[str] = []
        self._scripted: dict[str, list[CopyState]] = {}
        self._pending: dict[str, tuple[str, CopyState]] = {}

    def script_copy(self, destination: str, *states: CopyState) -> None:
        """Queue the states reported for the next copy onto `destination`."""
        self._scripted[destination] = list(states)

    async def exists(self, name: str) -> bool:
        return name in self.blobs

    async def start_copy(self, source: str, destination: str) -> CopyState:
        self.copies.append((source, destination))
        if source not in self.blobs:
            return CopyState(CopyStatus.FAILED, f"Copy source {source} does not exist")
        states = self._scripted.pop(destination, None)
        if not states:
            self.blobs[destination] = self.blobs[source]
            return CopyState(CopyStatus.SUCCESS)
        self._pending[destination] = (source, CopyState(CopyStatus.PENDING))
        self._scripted[destination] = states
        return CopyState(CopyStatus.PENDING)

    async def get_copy_state(self, name: str) -> CopyState:
        if name not in self._pending:
            if name in self.blobs:
                return CopyState(CopyStatus.SUCCESS)
            return CopyState(CopyStatus.FAILED, f"No copy to {name}")
        source, _ = self._pending[name]
        states = self._scripted.get(name) or [CopyState(CopyStatus.SUCCESS)]
        state = states.pop(0) if len(states) > 1 else states[0]
        if state.status is not CopyStatus.PENDING:
            del self._pending[name]
            self._scripted.pop(name, None)
            if state.status is CopyStatus.SUCCESS:
                self.blobs[name] = self.blobs[source]
        return state

    async def download(self, name: str) -> bytes:
        try:
            return self.blobs[name]
        except KeyError:
            raise FileNotFoundError(name) from None

    async def upload(self, name: str, data: bytes) -> None:
        self.uploads.append(name)
        self.blobs[name] = bytes(data)


def provide_blob_storage_service(config: StorageConfig) -> S3BlobStorageService:
    """Provider for `S3BlobStorageService`.

    Returns:
        S3BlobStorageService: Service instance.

    """
    return S3BlobStorageService(config)
