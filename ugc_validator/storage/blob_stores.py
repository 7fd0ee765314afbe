"""Blob store backends for accepted review photos, tried in a fixed order."""
import logging
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import quote

import requests

from ugc_validator.errors import BlobStoreError

logger = logging.getLogger(__name__)


class LocalDirectoryBlobStore:
    """Writes blobs under a local directory. URLs use `base_url` when given, else file URIs."""

    name = "local"

    def __init__(self, base_dir: Path, base_url: Optional[str] = None):
        self.base_dir = Path(base_dir)
        self.base_url = base_url.rstrip('/') if base_url else None

    def upload(self, data: bytes, key: str, content_type: str) -> str:
        target = (self.base_dir / key).resolve()
        if self.base_dir.resolve() not in target.parents:
            raise BlobStoreError(f"Blob key escapes storage directory: {key}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise BlobStoreError(f"Could not write {target}: {e}") from e

        logger.debug(f"Stored {len(data)} bytes at {target} ({content_type})")
        if self.base_url:
            return f"{self.base_url}/{quote(key)}"
        return target.as_uri()


class HttpBlobStore:
    """
    PUTs blobs to an HTTP object store (Azure SAS / presigned-URL style).

    `upload_url` is the container URL; `query` is an optional SAS token appended
    to the PUT only. The returned URL is built from `public_url` (defaults to
    `upload_url`) and never contains the token.
    """

    name = "http"

    def __init__(
        self,
        upload_url: str,
        public_url: Optional[str] = None,
        query: Optional[str] = None,
        timeout: float = 15.0
    ):
        self.upload_url = upload_url.rstrip('/')
        self.public_url = (public_url or upload_url).rstrip('/')
        self.query = query.lstrip('?') if query else None
        self.timeout = timeout

    def upload(self, data: bytes, key: str, content_type: str) -> str:
        url = f"{self.upload_url}/{quote(key)}"
        if self.query:
            url = f"{url}?{self.query}"

        try:
            response = requests.put(
                url,
                data=data,
                headers={
                    "Content-Type": content_type,
                    "x-ms-blob-type": "BlockBlob",
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise BlobStoreError(f"HTTP upload of {key} failed: {e}") from e

        return f"{self.public_url}/{quote(key)}"


def upload_with_fallback(
    stores: List,
    data: bytes,
    key: str,
    content_type: str
) -> Tuple[Optional[str], Optional[str]]:
    """
    Try each store in order until one accepts the upload.

    Returns (url, store name), or (None, None) if every store failed. A failed
    upload never changes the image decision.
    """
    for store in stores:
        try:
            url = store.upload(data, key, content_type)
            logger.info(f"  Uploaded {key} to {store.name} store")
            return url, store.name
        except BlobStoreError as e:
            logger.warning(f"  Upload to {store.name} store failed, trying next: {e}")

    if stores:
        logger.error(f"  All blob stores failed for {key}")
    return None, None
