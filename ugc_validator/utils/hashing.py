"""Hashing utilities for upload keys and classifier caching."""
import hashlib
import io
import logging
import re
import time
from typing import Union

logger = logging.getLogger(__name__)


def compute_sha256(data: Union[bytes, io.BytesIO]) -> str:
    """Compute SHA256 hash of raw bytes or a stream."""
    hash_sha256 = hashlib.sha256()

    if isinstance(data, io.BytesIO):
        data.seek(0)
        for chunk in iter(lambda: data.read(4096), b""):
            hash_sha256.update(chunk)
        data.seek(0)  # Reset for potential reuse
    else:
        hash_sha256.update(data)

    return hash_sha256.hexdigest()


def safe_filename(filename: str) -> str:
    """Replace anything outside [A-Za-z0-9.-] with underscores."""
    cleaned = re.sub(r"[^A-Za-z0-9.\-]", "_", filename or "")
    return cleaned or "image"


def build_blob_key(order_id: str, filename: str, data: bytes) -> str:
    """Order-scoped object key: orders/<order>/<millis>-<hash8>-<name>."""
    millis = int(time.time() * 1000)
    digest = compute_sha256(data)[:8]
    return f"orders/{safe_filename(order_id)}/{millis}-{digest}-{safe_filename(filename)}"
