"""Firebase Storage blob store over the REST API."""

import httpx

from blast.adapters.blob.base import BlobStore
from blast.adapters.blob.paths import download_url, ensure_url, object_url
from blast.config import settings
from blast.domain.errors import NotFound, TransientIO
from blast.logging import get_logger

logger = get_logger(__name__)


class FirebaseBlobStore(BlobStore):
    """Firebase Storage (Google Cloud Storage) blob store.

    Objects are uploaded with a media upload, and their public download URL
    is built from the object's download token. The token shows up in the
    object metadata some time after the upload completes, which is the
    eventual-consistency window callers poll through.
    """

    def __init__(
        self,
        bucket: str | None = None,
        api_base: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.bucket = bucket or settings.firebase_bucket
        self.api_base = (api_base or settings.firebase_api_base).rstrip("/")
        self.token = token or settings.firebase_token
        self.timeout = timeout or settings.firebase_timeout
        self._transport = transport

        if not self.token:
            logger.warning("Firebase Storage token not configured")

    @property
    def name(self) -> str:
        return "firebase"

    def _headers(self) -> dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self._transport,
        )

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        logger.info("firebase_upload_started", path=path, size=len(data))
        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.api_base}/b/{self.bucket}/o",
                    params={"uploadType": "media", "name": path},
                    headers={**self._headers(), "Content-Type": content_type},
                    content=data,
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            error_msg = f"Firebase upload error: {e.response.status_code} - {e.response.text}"
            logger.error("firebase_upload_failed", path=path, error=error_msg)
            raise TransientIO(error_msg) from e
        except httpx.RequestError as e:
            logger.error("firebase_upload_failed", path=path, error=str(e))
            raise TransientIO(f"Firebase upload error: {e}") from e

        logger.info("firebase_upload_completed", path=path)

    async def resolve_url(self, path: str) -> str | None:
        try:
            async with self._client() as client:
                response = await client.get(
                    object_url(self.api_base, self.bucket, path),
                    headers=self._headers(),
                )
                if response.status_code == 404:
                    return None
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise TransientIO(
                f"Firebase metadata error: {e.response.status_code} - {e.response.text}"
            ) from e
        except httpx.RequestError as e:
            raise TransientIO(f"Firebase metadata error: {e}") from e

        tokens = data.get("downloadTokens")
        if not tokens:
            return None
        return download_url(self.api_base, self.bucket, path, tokens.split(",")[0])

    async def fetch(self, url: str) -> bytes:
        ensure_url(url)
        try:
            async with self._client() as client:
                response = await client.get(url, headers=self._headers())
                if response.status_code == 404:
                    raise NotFound(f"No object at {url[:100]}")
                response.raise_for_status()
                return response.content
        except httpx.HTTPStatusError as e:
            logger.error("firebase_fetch_failed", url=url[:100], status=e.response.status_code)
            raise TransientIO(f"Firebase fetch error: {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error("firebase_fetch_failed", url=url[:100], error=str(e))
            raise TransientIO(f"Firebase fetch error: {e}") from e

    async def delete_path(self, path: str) -> None:
        try:
            async with self._client() as client:
                response = await client.delete(
                    object_url(self.api_base, self.bucket, path),
                    headers=self._headers(),
                )
                if response.status_code == 404:
                    raise NotFound(f"No object at {path}")
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransientIO(f"Firebase delete error: {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise TransientIO(f"Firebase delete error: {e}") from e

        logger.info("firebase_object_deleted", path=path)

    async def health_check(self) -> bool:
        """Check if the bucket listing endpoint is reachable."""
        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.api_base}/b/{self.bucket}/o",
                    headers=self._headers(),
                    params={"maxResults": 1},
                )
                return response.status_code == 200
        except httpx.RequestError as e:
            logger.error("firebase_health_check_failed", error=str(e))
            return False
