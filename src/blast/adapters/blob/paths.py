"""Helpers for blob storage URLs and object paths.

Download URLs follow the Firebase Storage layout::

    https://firebasestorage.googleapis.com/v0/b/<bucket>/o/<percent-encoded path>?alt=media&token=...

The object path is the single segment after the ``/o/`` marker, with ``/``
encoded as ``%2F``.
"""

import time
from urllib.parse import quote, unquote, urlsplit
from uuid import uuid4

from blast.domain.errors import InvalidReference

OBJECT_MARKER = "/o/"

_VIDEO_MIME_TYPES = {
    "mp4": "video/mp4",
    "m4v": "video/x-m4v",
    "mov": "video/quicktime",
    "webm": "video/webm",
}


def ensure_url(url: str) -> str:
    """Return ``url`` if it is an absolute http(s) URL.

    Raises:
        InvalidReference: If the URL cannot be parsed or is not absolute
    """
    try:
        parts = urlsplit(url)
    except ValueError as e:
        raise InvalidReference(f"Malformed URL: {url!r}") from e
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise InvalidReference(f"Not an absolute http(s) URL: {url!r}")
    return url


def storage_path_from_url(url: str) -> str:
    """Extract the object path from a storage download URL.

    Strips scheme and host, takes the segment after the object marker and
    percent-decodes it.

    Raises:
        InvalidReference: If the URL has no object segment
    """
    ensure_url(url)
    raw_path = urlsplit(url).path
    if OBJECT_MARKER not in raw_path:
        raise InvalidReference(f"URL has no storage object segment: {url!r}")
    encoded = raw_path.rpartition(OBJECT_MARKER)[2]
    path = unquote(encoded)
    if not path:
        raise InvalidReference(f"URL has an empty storage object segment: {url!r}")
    return path


def object_url(api_base: str, bucket: str, path: str) -> str:
    """REST URL addressing an object's metadata."""
    return f"{api_base.rstrip('/')}/b/{bucket}/o/{quote(path, safe='')}"


def download_url(api_base: str, bucket: str, path: str, token: str | None = None) -> str:
    """Public download URL for an object."""
    url = f"{object_url(api_base, bucket, path)}?alt=media"
    if token:
        url += f"&token={token}"
    return url


def extension_from_url(url: str, default: str = "mp4") -> str:
    """Guess a file extension from a URL's object name."""
    try:
        name = storage_path_from_url(url).rsplit("/", 1)[-1]
    except InvalidReference:
        name = urlsplit(url).path.rsplit("/", 1)[-1]
    if "." in name:
        ext = name.rsplit(".", 1)[-1].lower()
        if ext.isalnum():
            return ext
    return default


def video_content_type(ext: str) -> str:
    return _VIDEO_MIME_TYPES.get(ext.lower(), "video/mp4")


def unique_asset_path(prefix: str, ext: str = "mp4", now: float | None = None) -> str:
    """Generate ``<prefix>/<random-id>_<unix-timestamp>.<ext>``."""
    timestamp = int(now if now is not None else time.time())
    return f"{prefix.strip('/')}/{uuid4().hex}_{timestamp}.{ext}"
