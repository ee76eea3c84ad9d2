"""In-memory blob store for tests and local development."""

from dataclasses import dataclass
from uuid import uuid4

from blast.adapters.blob.base import BlobStore
from blast.adapters.blob.paths import download_url, storage_path_from_url
from blast.domain.errors import NotFound
from blast.logging import get_logger

logger = get_logger(__name__)


@dataclass
class StoredBlob:
    """An object held by the in-memory store."""

    data: bytes
    content_type: str
    token: str


class InMemoryBlobStore(BlobStore):
    """Stub blob store that simulates the URL eventual-consistency window.

    ``visibility_lag`` is the number of ``resolve_url`` polls per object that
    report "not yet available" before the URL resolves; None means never.
    URLs use the Firebase Storage layout so URL parsing behaves the same as in
    production.
    """

    def __init__(
        self,
        bucket: str = "blast-memory",
        api_base: str = "https://firebasestorage.googleapis.com/v0",
        visibility_lag: int | None = 0,
    ) -> None:
        self.bucket = bucket
        self.api_base = api_base
        self.visibility_lag = visibility_lag
        self.objects: dict[str, StoredBlob] = {}
        self.resolve_attempts: dict[str, int] = {}
        self.calls: list[tuple[str, str]] = []
        self._failures: dict[str, list[Exception]] = {}

    @property
    def name(self) -> str:
        return "memory"

    def inject_failure(self, operation: str, error: Exception) -> None:
        """Make the next call to ``operation`` raise ``error``."""
        self._failures.setdefault(operation, []).append(error)

    def _record(self, operation: str, target: str) -> None:
        self.calls.append((operation, target))
        pending = self._failures.get(operation)
        if pending:
            raise pending.pop(0)

    def put(self, path: str, data: bytes, content_type: str = "video/mp4") -> str:
        """Seed an object that is immediately visible and return its URL."""
        token = uuid4().hex
        self.objects[path] = StoredBlob(data=data, content_type=content_type, token=token)
        return download_url(self.api_base, self.bucket, path, token)

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        self._record("upload", path)
        self.objects[path] = StoredBlob(data=data, content_type=content_type, token=uuid4().hex)
        self.resolve_attempts[path] = 0
        logger.debug("memory_blob_uploaded", path=path, size=len(data))

    async def resolve_url(self, path: str) -> str | None:
        self._record("resolve_url", path)
        attempts = self.resolve_attempts.get(path, 0) + 1
        self.resolve_attempts[path] = attempts
        blob = self.objects.get(path)
        if blob is None:
            return None
        if self.visibility_lag is None or attempts <= self.visibility_lag:
            return None
        return download_url(self.api_base, self.bucket, path, blob.token)

    async def fetch(self, url: str) -> bytes:
        path = storage_path_from_url(url)
        self._record("fetch", path)
        blob = self.objects.get(path)
        if blob is None:
            raise NotFound(f"No object at {path}")
        return blob.data

    async def delete_path(self, path: str) -> None:
        self._record("delete", path)
        if path not in self.objects:
            raise NotFound(f"No object at {path}")
        del self.objects[path]
